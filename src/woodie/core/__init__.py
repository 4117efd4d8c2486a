"""Core business logic module.

Modules:
- mastery: mastery transitions, review intervals, overdue ranking, progress
- answer_checker: answer validation per problem type
- review_repository: solution records, review targets, completion, statistics
- scheduler: periodic batch jobs over review data
"""

__all__ = [
    "mastery",
    "answer_checker",
    "review_repository",
    "scheduler",
]
