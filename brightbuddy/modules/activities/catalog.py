"""
Activity Catalog
================

Purpose
-------
Static table of learning activities and the lookups the orchestration
layer needs to resolve ``activity_id -> subject, difficulty, type``.

Non-Responsibilities
--------------------
- Activity content (questions, prompts); only metadata lives here
- Recording completions (usage ledger)
"""

from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from brightbuddy.domain.models.activity import ActivityType, Difficulty, LearningActivity
from brightbuddy.modules.shared.exceptions import NotFoundError

_BEG, _INT, _ADV = Difficulty.BEGINNER, Difficulty.INTERMEDIATE, Difficulty.ADVANCED


def _activity(
    activity_id: str,
    title: str,
    description: str,
    subject: str,
    difficulty: Difficulty,
    activity_type: ActivityType,
    content_type: str,
    is_premium: bool,
    estimated_time: int,
    *tags: str,
) -> LearningActivity:
    return LearningActivity(
        id=activity_id,
        title=title,
        description=description,
        subject=subject,
        difficulty=difficulty,
        activity_type=activity_type,
        content_type=content_type,
        is_premium=is_premium,
        estimated_time=estimated_time,
        tags=tags,
    )


_T = ActivityType

ACTIVITIES: Tuple[LearningActivity, ...] = (
    _activity("math_001", "Fraction Fun", "Learn about fractions through interactive visual exercises",
              "Math", _BEG, _T.GAME, "fraction_matching", False, 5, "fractions", "visual", "beginner"),
    _activity("math_002", "Multiplication Master", "Practice multiplication tables with timed challenges",
              "Math", _INT, _T.CHALLENGE, "multiplication_timed", False, 3, "multiplication", "timed", "tables"),
    _activity("math_003", "Algebra Adventure", "Solve simple algebraic equations step by step",
              "Math", _ADV, _T.EXERCISE, "algebra_solving", True, 8, "algebra", "equations", "problem-solving"),
    _activity("science_001", "Plant Life Cycle", "Learn about how plants grow from seed to flower",
              "Science", _BEG, _T.QUIZ, "multiple_choice", False, 4, "biology", "plants", "life-cycle"),
    _activity("science_002", "Chemical Reactions", "Explore different types of chemical reactions",
              "Science", _INT, _T.EXERCISE, "chemical_balancing", True, 10, "chemistry", "reactions", "balancing"),
    _activity("reading_001", "Reading Comprehension", "Read a short story and answer questions about it",
              "Reading", _BEG, _T.EXERCISE, "reading_comprehension", False, 6, "comprehension", "story", "vocabulary"),
    _activity("reading_002", "Vocabulary Builder", "Learn new words and their meanings through context",
              "Reading", _INT, _T.GAME, "vocabulary_matching", False, 5, "vocabulary", "context", "definitions"),
    _activity("writing_001", "Creative Writing Prompt", "Write a short story based on a given prompt",
              "Writing", _BEG, _T.EXERCISE, "writing_prompt", False, 15, "creative-writing", "storytelling", "imagination"),
    _activity("writing_002", "Grammar Check", "Identify and correct grammar mistakes in sentences",
              "Writing", _INT, _T.QUIZ, "grammar_correction", True, 7, "grammar", "correction", "language"),
    _activity("history_001", "Ancient Civilizations", "Learn about ancient Egypt, Greece, and Rome",
              "History", _BEG, _T.QUIZ, "history_timeline", False, 5, "ancient-history", "civilizations", "timeline"),
    _activity("art_001", "Color Theory", "Learn about primary, secondary, and complementary colors",
              "Art", _BEG, _T.GAME, "color_mixing", False, 4, "colors", "theory", "mixing"),
    _activity("music_001", "Musical Notes", "Learn to read basic musical notation",
              "Music", _BEG, _T.EXERCISE, "note_reading", True, 8, "music-theory", "notation", "reading"),
    _activity("pe_001", "Fitness Challenge", "Complete a series of physical exercises",
              "Physical Education", _BEG, _T.CHALLENGE, "fitness_circuit", False, 10, "fitness", "exercise", "health"),
    _activity("math_004", "Geometry Explorer", "Learn about shapes, angles, and geometric properties",
              "Math", _INT, _T.GAME, "geometry_quiz", False, 6, "geometry", "shapes", "angles"),
    _activity("math_005", "Probability Puzzle", "Solve probability problems and understand chance",
              "Math", _ADV, _T.EXERCISE, "probability_calculation", True, 8, "probability", "statistics", "chance"),
    _activity("science_003", "Solar System Explorer", "Learn about planets, stars, and space exploration",
              "Science", _BEG, _T.QUIZ, "space_quiz", False, 5, "astronomy", "planets", "space"),
    _activity("science_004", "Human Body Systems", "Explore the different systems that keep us alive",
              "Science", _INT, _T.EXERCISE, "body_systems_matching", True, 10, "biology", "anatomy", "human-body"),
    _activity("reading_003", "Speed Reading Challenge", "Improve your reading speed and comprehension",
              "Reading", _INT, _T.CHALLENGE, "speed_reading", True, 7, "speed-reading", "comprehension", "focus"),
    _activity("writing_003", "Poetry Workshop", "Learn to write different types of poetry",
              "Writing", _INT, _T.EXERCISE, "poetry_writing", False, 12, "poetry", "creative-writing", "rhyme"),
    _activity("history_002", "World War II Timeline", "Learn about key events and figures of WWII",
              "History", _INT, _T.EXERCISE, "timeline_ordering", True, 8, "world-war-ii", "timeline", "20th-century"),
    _activity("art_002", "Perspective Drawing", "Learn the basics of 3D drawing and perspective",
              "Art", _INT, _T.EXERCISE, "drawing_tutorial", True, 15, "drawing", "perspective", "3d-art"),
    _activity("music_002", "Rhythm Master", "Learn to read and play different rhythms",
              "Music", _INT, _T.GAME, "rhythm_tapping", False, 6, "rhythm", "music-theory", "timing"),
    _activity("pe_002", "Yoga Flow", "Learn basic yoga poses and breathing techniques",
              "Physical Education", _BEG, _T.EXERCISE, "yoga_sequence", False, 12, "yoga", "flexibility", "mindfulness"),
    _activity("thinking_001", "Logic Puzzles", "Solve brain teasers and improve logical reasoning",
              "Critical Thinking", _INT, _T.CHALLENGE, "logic_puzzle", True, 10, "logic", "reasoning", "puzzle"),
    _activity("tech_001", "Coding Basics", "Learn fundamental programming concepts",
              "Technology", _BEG, _T.EXERCISE, "coding_concepts", True, 12, "programming", "coding", "computer-science"),
)

# Subjects rotated through by the daily challenge
CORE_SUBJECTS: Tuple[str, ...] = (
    "Math",
    "Science",
    "Reading",
    "Writing",
    "History",
    "Art",
    "Music",
    "Physical Education",
)

DAILY_CHALLENGE_SIZE = 3


class ActivityCatalog:
    """
    Read-only lookups over the activity table.

    Every query returns activities in catalog order.
    """

    def __init__(self, activities: Iterable[LearningActivity] = ACTIVITIES) -> None:
        self._activities: Tuple[LearningActivity, ...] = tuple(activities)
        self._by_id: Dict[str, LearningActivity] = {a.id: a for a in self._activities}
        if len(self._by_id) != len(self._activities):
            raise ValueError("Activity catalog contains duplicate ids")

    def __len__(self) -> int:
        return len(self._activities)

    def all(self) -> List[LearningActivity]:
        return list(self._activities)

    def get_activity(self, activity_id: str) -> LearningActivity:
        """
        Raises:
            NotFoundError: Unknown activity id
        """
        activity = self._by_id.get(activity_id)
        if activity is None:
            raise NotFoundError("Activity", activity_id)
        return activity

    def find(self, activity_id: str) -> Optional[LearningActivity]:
        return self._by_id.get(activity_id)

    def get_by_subject(self, subject: str) -> List[LearningActivity]:
        return [a for a in self._activities if a.subject == subject]

    def get_by_difficulty(self, difficulty: Difficulty) -> List[LearningActivity]:
        difficulty = Difficulty(difficulty)
        return [a for a in self._activities if a.difficulty == difficulty]

    def get_free_activities(self) -> List[LearningActivity]:
        return [a for a in self._activities if not a.is_premium]

    def get_premium_activities(self) -> List[LearningActivity]:
        return [a for a in self._activities if a.is_premium]

    def get_subjects(self) -> List[str]:
        """Distinct subjects in first-seen order."""
        return list(dict.fromkeys(a.subject for a in self._activities))

    def get_recommended(
        self,
        completed_ids: Iterable[str],
        include_premium: bool = False,
        limit: int = 3,
    ) -> List[LearningActivity]:
        """
        Activities not yet completed, least-practised subjects first.

        Premium activities are offered only when ``include_premium`` is set.
        Ties keep catalog order, so the result is stable for the same input.
        """
        completed = list(completed_ids)
        done = set(completed)
        subject_counts = Counter(
            self._by_id[activity_id].subject for activity_id in completed if activity_id in self._by_id
        )

        candidates = [
            a
            for a in self._activities
            if a.id not in done and (include_premium or not a.is_premium)
        ]
        candidates.sort(key=lambda a: subject_counts[a.subject])
        return candidates[: max(0, limit)]

    def get_daily_challenge(self, day: date, include_premium: bool = True) -> List[LearningActivity]:
        """
        The challenge set for ``day``: one activity from each of three
        consecutive core subjects, rotated by date.
        """
        ordinal = day.toordinal()
        start = ordinal % len(CORE_SUBJECTS)

        challenge: List[LearningActivity] = []
        for offset in range(len(CORE_SUBJECTS)):
            subject = CORE_SUBJECTS[(start + offset) % len(CORE_SUBJECTS)]
            pool = [
                a for a in self.get_by_subject(subject) if include_premium or not a.is_premium
            ]
            if not pool:
                continue
            challenge.append(pool[(ordinal // len(CORE_SUBJECTS)) % len(pool)])
            if len(challenge) == DAILY_CHALLENGE_SIZE:
                break
        return challenge
