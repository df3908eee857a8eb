"""
Data manager for JSON quiz files: loading, validation and question lookups.
"""
import json
import os
import logging
from typing import Any, Dict, Iterable, List, Optional, Set
from pathlib import Path

from .models import AnswerKey, Option, Question, QuestionType, QuizCategory, QuizDefinition

VALID_DIFFICULTIES = ("easy", "medium", "hard")


class DataManager:
    """Question repository backed by a directory of JSON quiz files."""

    def __init__(self, quiz_directory: str = "./quizzes/", default_pass_score: int = 70):
        """
        Initialize DataManager with quiz directory path.

        Args:
            quiz_directory: Path to directory containing JSON quiz files
            default_pass_score: Pass score for quizzes that do not set one
        """
        self.quiz_directory = Path(quiz_directory)
        self.default_pass_score = default_pass_score
        self.loaded_quizzes: Dict[str, QuizDefinition] = {}  # Quiz ID -> definition
        self._quiz_questions: Dict[str, List[Question]] = {}  # Quiz ID -> bank in file order
        self._questions_by_id: Dict[str, Question] = {}
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []  # Track loading errors for user feedback
        self.sample_quiz_created = False

    def load_quiz_files(self) -> Dict[str, QuizDefinition]:
        """
        Load all JSON files from the quiz directory with comprehensive error handling.

        Returns:
            Dictionary mapping quiz ids to QuizDefinition objects
        """
        self.loaded_quizzes.clear()
        self._quiz_questions.clear()
        self._questions_by_id.clear()
        self.load_errors.clear()
        self.sample_quiz_created = False

        directory_result = self._ensure_quiz_directory()
        if not directory_result['success']:
            self.load_errors.append(directory_result['error'])
            return self.loaded_quizzes

        scan_result = self._scan_quiz_files()
        if not scan_result['success']:
            self.load_errors.append(scan_result['error'])
            return self.loaded_quizzes

        json_files = scan_result['files']

        # If no files found, create sample quiz and provide guidance
        if not json_files:
            self.logger.warning(f"No JSON files found in {self.quiz_directory}")
            self.load_errors.append(f"No quiz files found in {self.quiz_directory}")
            sample_file = self._create_sample_quiz()
            if sample_file is None:
                return self.loaded_quizzes
            json_files = [sample_file]

        successful_loads = 0
        for json_file in json_files:
            load_result = self._load_quiz_file_safely(json_file)
            if load_result['success']:
                successful_loads += 1
            else:
                self.load_errors.append(f"{json_file.name}: {load_result['error']}")

        if successful_loads == 0:
            self.logger.error("No quiz files could be loaded successfully")
            self.load_errors.append("All quiz files failed to load")
            return self.loaded_quizzes

        self.logger.info(f"Successfully loaded {successful_loads} quiz files")
        if self.load_errors:
            self.logger.warning(f"Encountered {len(self.load_errors)} loading errors")

        return self.loaded_quizzes

    def _load_single_file(self, file_path: Path) -> Optional[dict]:
        """
        Load and parse a single JSON file.

        Returns:
            Parsed JSON data or None if loading failed
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
                if self.validate_quiz_structure(data):
                    return data
                else:
                    self.logger.error(f"Invalid quiz structure in {file_path}")
                    return None
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {file_path}: {e}")
            return None
        except FileNotFoundError:
            self.logger.error(f"Quiz file not found: {file_path}")
            return None
        except OSError as e:
            self.logger.error(f"Failed to read quiz file {file_path}: {e}")
            return None

    def validate_quiz_structure(self, data: dict) -> bool:
        """
        Validate that JSON data has the correct quiz structure.

        Expected structure:
        {
            "quiz": {"title": str, "slug": str, "time_limit": int|null, ...},
            "questions": [
                {
                    "type": "multiple_choice" | "true_false" | "short_answer",
                    "text": str,
                    "options": [{"id": str, "text": str, "is_correct": bool}],
                    "answers": [{"text": str, "case_sensitive": bool, "exact_match": bool}]
                }
            ]
        }

        Args:
            data: Parsed JSON data to validate

        Returns:
            True if structure is valid, False otherwise
        """
        if not isinstance(data, dict):
            self.logger.error("Quiz data must be a JSON object")
            return False

        quiz = data.get("quiz")
        if not isinstance(quiz, dict):
            self.logger.error("Quiz data must contain a 'quiz' object")
            return False

        if not isinstance(quiz.get("title"), str) or not quiz["title"].strip():
            self.logger.error("Quiz 'title' must be a non-empty string")
            return False

        time_limit = quiz.get("time_limit")
        if time_limit is not None and (not self._is_int(time_limit) or time_limit < 0):
            self.logger.error("Quiz 'time_limit' must be a non-negative integer or null")
            return False

        pass_score = quiz.get("pass_score")
        if pass_score is not None and (not self._is_int(pass_score) or not 0 <= pass_score <= 100):
            self.logger.error("Quiz 'pass_score' must be an integer between 0 and 100")
            return False

        attempt_count = quiz.get("attempt_count")
        if attempt_count is not None and (not self._is_int(attempt_count) or attempt_count < 0):
            self.logger.error("Quiz 'attempt_count' must be a non-negative integer")
            return False

        for flag in ("show_correct_answer", "allow_review", "is_published"):
            if not self._is_optional_bool(quiz.get(flag)):
                self.logger.error(f"Quiz '{flag}' must be true or false")
                return False

        difficulty = quiz.get("difficulty")
        if difficulty is not None and difficulty not in VALID_DIFFICULTIES:
            self.logger.error(f"Quiz 'difficulty' must be one of {', '.join(VALID_DIFFICULTIES)}")
            return False

        questions = data.get("questions")
        if not isinstance(questions, list):
            self.logger.error("'questions' value must be an array")
            return False

        if not questions:
            self.logger.error("Questions array cannot be empty")
            return False

        valid_types = [question_type.value for question_type in QuestionType]
        for i, question_data in enumerate(questions):
            if not isinstance(question_data, dict):
                self.logger.error(f"Question {i} must be an object")
                return False

            if question_data.get("type") not in valid_types:
                self.logger.error(f"Question {i} 'type' must be one of {', '.join(valid_types)}")
                return False

            if not isinstance(question_data.get("text"), str):
                self.logger.error(f"Question {i} 'text' field must be a string")
                return False

            points = question_data.get("points")
            if points is not None and (not self._is_int(points) or points < 0):
                self.logger.error(f"Question {i} 'points' must be a non-negative integer")
                return False

            order_index = question_data.get("order_index")
            if order_index is not None and not self._is_int(order_index):
                self.logger.error(f"Question {i} 'order_index' must be an integer")
                return False

            if question_data["type"] == QuestionType.SHORT_ANSWER.value:
                if not self._validate_answer_keys(i, question_data.get("answers")):
                    return False
            elif not self._validate_options(i, question_data.get("options")):
                return False

        return True

    def _validate_options(self, index: int, options: Any) -> bool:
        if not isinstance(options, list) or not options:
            self.logger.error(f"Question {index} 'options' field must be a non-empty array")
            return False

        for option in options:
            if not isinstance(option, dict) or not isinstance(option.get("text"), str):
                self.logger.error(f"Question {index} options must be objects with a 'text' string")
                return False

            order_index = option.get("order_index")
            if order_index is not None and not self._is_int(order_index):
                self.logger.error(f"Question {index} option 'order_index' must be an integer")
                return False

        correct_count = sum(1 for option in options if option.get("is_correct") is True)
        if correct_count != 1:
            self.logger.error(f"Question {index} must have exactly one correct option, found {correct_count}")
            return False

        return True

    def _validate_answer_keys(self, index: int, answers: Any) -> bool:
        if not isinstance(answers, list) or not answers:
            self.logger.error(f"Question {index} 'answers' field must be a non-empty array")
            return False

        for answer in answers:
            if not isinstance(answer, dict) or not isinstance(answer.get("text"), str):
                self.logger.error(f"Question {index} answers must be objects with a 'text' string")
                return False

            for flag in ("case_sensitive", "exact_match"):
                if not self._is_optional_bool(answer.get(flag)):
                    self.logger.error(f"Question {index} answer '{flag}' must be true or false")
                    return False

        return True

    @staticmethod
    def _is_int(value: Any) -> bool:
        return isinstance(value, int) and not isinstance(value, bool)

    @staticmethod
    def _is_optional_bool(value: Any) -> bool:
        return value is None or isinstance(value, bool)

    def _parse_quiz(self, quiz_data: dict, file_stem: str) -> QuizDefinition:
        """
        Parse validated quiz data and register its questions.

        Args:
            quiz_data: Validated quiz data dictionary
            file_stem: File name without extension, used when the quiz has no slug

        Returns:
            QuizDefinition for the file
        """
        quiz = quiz_data["quiz"]
        slug = str(quiz.get("slug") or file_stem)
        quiz_id = str(quiz.get("id") or slug)

        questions = self._parse_questions(quiz_id, quiz_data["questions"])

        category = None
        category_data = quiz.get("category")
        if isinstance(category_data, dict) and category_data.get("name"):
            category = QuizCategory(
                id=str(category_data.get("id") or category_data["name"]),
                name=category_data["name"],
                color=category_data.get("color"),
                icon=category_data.get("icon")
            )

        pass_score = quiz.get("pass_score")
        definition = QuizDefinition(
            id=quiz_id,
            slug=slug,
            title=quiz["title"],
            total_question_count=len(questions),
            time_limit=quiz.get("time_limit") or None,
            pass_score=pass_score if pass_score is not None else self.default_pass_score,
            show_correct_answer=quiz.get("show_correct_answer") is True,
            allow_review=quiz.get("allow_review") is True,
            description=quiz.get("description"),
            category=category,
            difficulty=quiz.get("difficulty"),
            is_published=quiz.get("is_published") is not False,
            attempt_count=quiz.get("attempt_count") or 0
        )

        self._quiz_questions[quiz_id] = questions
        return definition

    def _parse_questions(self, quiz_id: str, questions_data: List[dict]) -> List[Question]:
        """
        Parse validated question data into Question objects.

        Returns:
            List of Question objects in file order
        """
        questions = []

        for i, question_data in enumerate(questions_data):
            question_id = str(question_data.get("id") or f"{quiz_id}-q{i + 1}")
            question_type = QuestionType(question_data["type"])

            options = [
                Option(
                    id=str(option_data.get("id") or f"{question_id}-o{j + 1}"),
                    text=option_data["text"],
                    is_correct=option_data.get("is_correct") is True,
                    order_index=option_data.get("order_index") if option_data.get("order_index") is not None else j
                )
                for j, option_data in enumerate(question_data.get("options") or [])
            ]
            options.sort(key=lambda option: option.order_index)

            answer_keys = [
                AnswerKey(
                    text=answer_data["text"],
                    case_sensitive=answer_data.get("case_sensitive") is True,
                    exact_match=answer_data.get("exact_match") is not False
                )
                for answer_data in question_data.get("answers") or []
            ]

            questions.append(Question(
                id=question_id,
                question_type=question_type,
                text=question_data["text"],
                points=question_data["points"] if question_data.get("points") is not None else 1,
                options=options,
                answer_keys=answer_keys,
                explanation=question_data.get("explanation"),
                image=question_data.get("image"),
                order_index=question_data.get("order_index") if question_data.get("order_index") is not None else i
            ))

        questions.sort(key=lambda question: question.order_index)
        return questions

    # ------------------------------------------------------------------
    # Repository lookups
    # ------------------------------------------------------------------

    def get_quiz_definition_by_slug(self, slug: str) -> Optional[QuizDefinition]:
        """
        Look up a published quiz by slug.

        Returns:
            QuizDefinition, or None if missing or unpublished
        """
        for definition in self.loaded_quizzes.values():
            if definition.slug == slug and definition.is_published:
                return definition
        return None

    def get_quiz_definition_by_id(self, quiz_id: str) -> Optional[QuizDefinition]:
        """
        Look up a published quiz by id.

        Returns:
            QuizDefinition, or None if missing or unpublished
        """
        definition = self.loaded_quizzes.get(str(quiz_id))
        if definition is None or not definition.is_published:
            return None
        return definition

    def get_question_ids(self, quiz_id: str) -> Set[str]:
        """Ids of every question in a quiz bank, empty if the quiz is unknown."""
        return {question.id for question in self._quiz_questions.get(str(quiz_id), [])}

    def get_questions_by_ids(self, ids: Iterable[str]) -> List[Question]:
        """
        Fetch full question bodies.

        Returns:
            Questions for the known ids, in bank order rather than request order
        """
        wanted = set(ids)
        found = [question for question_id, question in self._questions_by_id.items() if question_id in wanted]
        missing = wanted - {question.id for question in found}
        if missing:
            self.logger.warning(f"Requested {len(missing)} unknown question ids")
        return found

    def list_quizzes(
        self,
        category: Optional[str] = None,
        difficulty: Optional[str] = None,
        search: Optional[str] = None
    ) -> List[QuizDefinition]:
        """
        Published quizzes matching the given filters.

        Args:
            category: Category id or name
            difficulty: easy, medium or hard
            search: Case-insensitive text looked up in title and description

        Returns:
            Matching quiz definitions sorted by title
        """
        results = []
        query = search.lower() if search else None

        for definition in self.loaded_quizzes.values():
            if not definition.is_published:
                continue
            if category and (
                definition.category is None or
                category not in (definition.category.id, definition.category.name)
            ):
                continue
            if difficulty and definition.difficulty != difficulty:
                continue
            if query and not (
                query in definition.title.lower() or
                (definition.description and query in definition.description.lower())
            ):
                continue
            results.append(definition)

        return sorted(results, key=lambda definition: definition.title.lower())

    def list_categories(self) -> List[QuizCategory]:
        """Distinct categories of published quizzes, sorted by name."""
        categories = {
            definition.category.id: definition.category
            for definition in self.loaded_quizzes.values()
            if definition.is_published and definition.category is not None
        }
        return sorted(categories.values(), key=lambda category: category.name)

    def get_available_quizzes(self) -> List[str]:
        """
        Get list of available quiz slugs.

        Returns:
            Slugs of published quizzes
        """
        return [definition.slug for definition in self.list_quizzes()]

    def get_quiz_count(self) -> int:
        """Get the total number of loaded quizzes."""
        return len(self.loaded_quizzes)

    def get_question_count(self, quiz_id: str) -> int:
        """
        Get the number of questions in a specific quiz.

        Returns:
            Number of questions in the quiz, or 0 if quiz not found
        """
        return len(self._quiz_questions.get(str(quiz_id), []))

    # ------------------------------------------------------------------
    # File handling
    # ------------------------------------------------------------------

    def _ensure_quiz_directory(self) -> Dict[str, Any]:
        """
        Ensure quiz directory exists with comprehensive error handling.

        Returns:
            Dictionary with success status and error message if applicable
        """
        try:
            if not self.quiz_directory.exists():
                self.quiz_directory.mkdir(parents=True, exist_ok=True)
                self.logger.info(f"Created quiz directory: {self.quiz_directory}")

            if not os.access(self.quiz_directory, os.R_OK):
                return {
                    'success': False,
                    'error': f"Permission denied: Cannot read from {self.quiz_directory}"
                }

            return {'success': True}

        except PermissionError:
            return {
                'success': False,
                'error': f"Permission denied: Cannot access {self.quiz_directory}"
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error accessing {self.quiz_directory}: {e}"
            }

    def _scan_quiz_files(self) -> Dict[str, Any]:
        """
        Scan quiz directory for JSON files with error handling.

        Returns:
            Dictionary with success status, files list, and error message if applicable
        """
        try:
            json_files = sorted(self.quiz_directory.glob("*.json"))
            return {
                'success': True,
                'files': json_files
            }
        except PermissionError:
            return {
                'success': False,
                'error': f"Permission denied: Cannot read directory {self.quiz_directory}",
                'files': []
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error scanning {self.quiz_directory}: {e}",
                'files': []
            }

    def _load_quiz_file_safely(self, json_file: Path) -> Dict[str, Any]:
        """
        Load a single quiz file with comprehensive error handling.

        Returns:
            Dictionary with success status and error message if applicable
        """
        try:
            if not json_file.exists():
                return {
                    'success': False,
                    'error': "File not found"
                }

            # Check file size (prevent loading extremely large files)
            file_size = json_file.stat().st_size
            max_size = 10 * 1024 * 1024  # 10MB limit
            if file_size > max_size:
                return {
                    'success': False,
                    'error': f"File too large ({file_size / 1024 / 1024:.1f}MB). Maximum size is {max_size / 1024 / 1024}MB"
                }

            quiz_data = self._load_single_file(json_file)
            if quiz_data is None:
                return {
                    'success': False,
                    'error': "Invalid JSON structure or validation failed"
                }

            # Parse into a scratch registry first so a rejected file leaves no trace
            previous_questions = dict(self._quiz_questions)
            definition = self._parse_quiz(quiz_data, json_file.stem)

            if definition.id in self.loaded_quizzes:
                self._quiz_questions = previous_questions
                return {
                    'success': False,
                    'error': f"Duplicate quiz id '{definition.id}'"
                }

            if any(d.slug == definition.slug for d in self.loaded_quizzes.values()):
                self._quiz_questions = previous_questions
                return {
                    'success': False,
                    'error': f"Duplicate quiz slug '{definition.slug}'"
                }

            questions = self._quiz_questions[definition.id]
            question_ids = [question.id for question in questions]
            duplicates = (set(question_ids) & set(self._questions_by_id)) or (
                {qid for qid in question_ids if question_ids.count(qid) > 1}
            )
            if duplicates:
                self._quiz_questions = previous_questions
                return {
                    'success': False,
                    'error': f"Duplicate question ids: {', '.join(sorted(duplicates))}"
                }

            self.loaded_quizzes[definition.id] = definition
            for question in questions:
                self._questions_by_id[question.id] = question

            self.logger.info(f"Loaded quiz '{definition.slug}' with {len(questions)} questions")
            return {'success': True}

        except (TypeError, ValueError) as e:
            self.logger.error(f"Malformed quiz data in {json_file}: {e}")
            return {
                'success': False,
                'error': f"Malformed quiz data: {e}"
            }
        except PermissionError:
            return {
                'success': False,
                'error': "Permission denied"
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error: {e}"
            }

    def _create_sample_quiz(self) -> Optional[Path]:
        """
        Create a sample quiz file when no quiz files are found.

        Returns:
            Path of the sample file, or None if it could not be written
        """
        sample_quiz_data = {
            "quiz": {
                "id": "sample-quiz",
                "slug": "sample-quiz",
                "title": "Sample Quiz",
                "description": "A short quiz showing every question type",
                "category": {"id": "general", "name": "General", "icon": "📚"},
                "difficulty": "easy",
                "time_limit": 90,
                "pass_score": 70,
                "show_correct_answer": True,
                "allow_review": True
            },
            "questions": [
                {
                    "id": "sample-1",
                    "type": "multiple_choice",
                    "text": "What is the capital of France?",
                    "options": [
                        {"id": "sample-1-a", "text": "Berlin", "is_correct": False},
                        {"id": "sample-1-b", "text": "Paris", "is_correct": True},
                        {"id": "sample-1-c", "text": "Madrid", "is_correct": False}
                    ],
                    "explanation": "Paris has been the capital of France since 987."
                },
                {
                    "id": "sample-2",
                    "type": "true_false",
                    "text": "2 + 2 equals 4.",
                    "options": [
                        {"id": "sample-2-t", "text": "True", "is_correct": True},
                        {"id": "sample-2-f", "text": "False", "is_correct": False}
                    ]
                },
                {
                    "id": "sample-3",
                    "type": "short_answer",
                    "text": "What programming language is this bot written in?",
                    "answers": [
                        {"text": "Python", "case_sensitive": False, "exact_match": False}
                    ]
                }
            ]
        }

        sample_file_path = self.quiz_directory / "sample_quiz.json"

        try:
            if not sample_file_path.exists():
                with open(sample_file_path, 'w', encoding='utf-8') as f:
                    json.dump(sample_quiz_data, f, indent=2, ensure_ascii=False)

                self.logger.info(f"Created sample quiz file: {sample_file_path}")
                self.sample_quiz_created = True

            return sample_file_path

        except OSError as e:
            self.logger.error(f"Failed to create sample quiz: {e}")
            self.load_errors.append(f"Failed to create sample quiz: {e}")
            return None

    def get_load_errors(self) -> List[str]:
        """
        Get list of errors encountered during the last load operation.

        Returns:
            List of error messages
        """
        return self.load_errors.copy()

    def has_load_errors(self) -> bool:
        """Check if there were any errors during the last load operation."""
        return len(self.load_errors) > 0

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Get a comprehensive summary of the loading operation.

        Returns:
            Dictionary with loading statistics and status
        """
        return {
            'total_quizzes': len(self.loaded_quizzes),
            'has_errors': self.has_load_errors(),
            'error_count': len(self.load_errors),
            'errors': self.get_load_errors(),
            'sample_created': self.sample_quiz_created,
            'quiz_directory': str(self.quiz_directory),
            'available_quizzes': self.get_available_quizzes()
        }
