"""
Grader - Auto-grading for quiz missions.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel

from mission_control.engines.progression.payloads import (
    QuizAnswer,
    QuizPayload,
    QuizQuestion,
    QuizQuestionType,
    QuizSubmission,
)


class QuestionResult(BaseModel):
    """Result for a single question."""

    question_id: str
    correct: bool
    answered: bool
    expected_answer_ids: List[str] = []


class QuizGrade(BaseModel):
    """Result of grading a whole quiz submission."""

    total_questions: int
    correct_answers: int
    score: int  # percent, rounded
    passing_score: int
    passed: bool
    question_results: List[QuestionResult]


class Grader:
    """
    Grades quiz answers: single/multiple choice by exact set match against
    correct_answer_ids, text questions count as correct once answered.
    """

    @classmethod
    def grade_question(cls, question: QuizQuestion, answer: Optional[QuizAnswer]) -> QuestionResult:
        if question.question_type == QuizQuestionType.TEXT:
            answered = bool(answer and (answer.text_answer or "").strip())
            return QuestionResult(question_id=question.id, correct=answered, answered=answered)

        chosen = set(answer.answer_ids) if answer else set()
        expected = set(question.correct_answer_ids)
        return QuestionResult(
            question_id=question.id,
            correct=bool(chosen) and chosen == expected,
            answered=bool(chosen),
            expected_answer_ids=sorted(expected),
        )

    @classmethod
    def grade(cls, payload: QuizPayload, submission: QuizSubmission) -> QuizGrade:
        """
        Score = round(correct / total * 100). A quiz with no questions scores 100.
        Passed iff score >= passing_score.
        """
        answers: Dict[str, QuizAnswer] = {a.question_id: a for a in submission.answers}
        results = [cls.grade_question(q, answers.get(q.id)) for q in payload.questions]

        total = len(results)
        correct = sum(1 for r in results if r.correct)
        score = round(correct / total * 100) if total else 100
        return QuizGrade(
            total_questions=total,
            correct_answers=correct,
            score=score,
            passing_score=payload.passing_score,
            passed=score >= payload.passing_score,
            question_results=results,
        )

    @classmethod
    def allowed_attempts(cls, payload: QuizPayload) -> Optional[int]:
        """Total attempts permitted; None means unlimited."""
        if not payload.allow_retries:
            return 1
        if payload.max_retries is None:
            return None
        return 1 + payload.max_retries

    @classmethod
    def attempts_remaining(cls, payload: QuizPayload, attempts_used: int) -> Optional[int]:
        allowed = cls.allowed_attempts(payload)
        if allowed is None:
            return None
        return max(0, allowed - attempts_used)
