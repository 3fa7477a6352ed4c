from mission_control.kernel.persistence.progress_repository import ProgressRepository

__all__ = ["ProgressRepository"]
