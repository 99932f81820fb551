import logging
from pathlib import Path
from typing import Dict, List, Set, Tuple, Union

import bleach
import yaml
from pydantic import ValidationError

from .models import ContentItem, Lesson
from .yaml_models import (
    YAMLProcessingError,
    YAMLProcessorConfig,
    _RawYAMLLessonFile,
)

logger = logging.getLogger(__name__)


def _strip_html(text: str) -> str:
    return bleach.clean(text, tags=[], strip=True).strip()


class YAMLProcessor:
    def __init__(self, config: YAMLProcessorConfig):
        self.config = config

    def process_file(
        self,
        file_path: Path,
    ) -> Tuple[List[Lesson], List[YAMLProcessingError]]:
        """
        Parse a lesson YAML file, validate its structure and convert its items.

        Parameters:
            file_path (Path): Path to the YAML lesson file to read and process.

        Returns:
            Tuple[List[Lesson], List[YAMLProcessingError]]: The lesson (a
            one-element list, empty if no item survived) and the errors of
            individual items.

        Raises:
            YAMLProcessingError: If the file is missing or unreadable, contains invalid YAML syntax, the top-level YAML value is not a dictionary, or the lesson-level schema validation fails.
        """
        try:
            content = file_path.read_text(encoding="utf-8")
            raw_yaml_content = yaml.safe_load(content)
        except FileNotFoundError:
            raise YAMLProcessingError(file_path, "File not found.") from None
        except IOError as e:
            raise YAMLProcessingError(
                file_path,
                f"Could not read file: {e}",
            ) from e
        except yaml.YAMLError as e:
            raise YAMLProcessingError(
                file_path,
                f"Invalid YAML syntax: {e}",
            ) from e

        if not isinstance(raw_yaml_content, dict):
            raise YAMLProcessingError(
                file_path,
                "Top level of YAML must be a dictionary (lesson object).",
            )

        try:
            lesson_data = _RawYAMLLessonFile.model_validate(raw_yaml_content)
        except ValidationError as e:
            error_details = e.errors()[0]
            field = ".".join(map(str, error_details["loc"]))
            msg = error_details["msg"]
            error_message = f"Validation error in field '{field}': {msg}"
            raise YAMLProcessingError(file_path, error_message) from e

        items: List[ContentItem] = []
        errors: List[YAMLProcessingError] = []
        seen_ids: Set[str] = set()
        for idx, raw_item in enumerate(lesson_data.items):
            result = self._process_single_item(
                raw_item.model_dump(), idx, lesson_data.lesson, file_path
            )
            if isinstance(result, YAMLProcessingError):
                errors.append(result)
            elif result.item_id in seen_ids:
                errors.append(
                    YAMLProcessingError(
                        file_path=file_path,
                        message="Duplicate item id within lesson.",
                        item_index=idx,
                        item_id=result.item_id,
                    )
                )
            else:
                seen_ids.add(result.item_id)
                items.append(result)

        if not items:
            return [], errors

        lesson = Lesson(
            lesson_id=lesson_data.lesson,
            title=_strip_html(lesson_data.title) if lesson_data.title else None,
            items=items,
        )
        return [lesson], errors

    def _process_single_item(
        self,
        item_dict: Dict,
        idx: int,
        lesson_id: str,
        file_path: Path,
    ) -> Union[ContentItem, YAMLProcessingError]:
        """
        Sanitize one raw item and build its ContentItem, or describe why that failed.
        """
        prompt = _strip_html(item_dict["prompt"])
        answer = _strip_html(item_dict["answer"])
        if not prompt or not answer:
            return YAMLProcessingError(
                message="Prompt and answer must not be empty after HTML removal.",
                file_path=file_path,
                item_index=idx,
                item_id=item_dict.get("id"),
            )
        try:
            return ContentItem(
                item_id=item_dict["id"],
                lesson_id=lesson_id,
                prompt=prompt,
                answer=answer,
                difficulty=item_dict["difficulty"],
            )
        except ValidationError as e:
            return YAMLProcessingError(
                message=f"Item validation failed: {e}",
                file_path=file_path,
                item_index=idx,
                item_id=item_dict.get("id"),
            )


def _process_file_wrapper(
    processor: YAMLProcessor,
    file_path: Path,
    config: YAMLProcessorConfig,
    all_lessons: List[Lesson],
    all_errors: List[YAMLProcessingError],
) -> None:
    """
    Process a single YAML file and aggregate its lessons and errors.

    With `config.fail_fast` the first error is raised instead of collected.
    """
    try:
        lessons, errors = processor.process_file(file_path)
        all_lessons.extend(lessons)
        all_errors.extend(errors)
        if config.fail_fast and errors:
            raise errors[0]
    except YAMLProcessingError as e:
        if config.fail_fast:
            raise
        all_errors.append(e)
    except Exception as e:
        err = YAMLProcessingError(
            file_path=file_path,
            message=(
                "An unexpected error occurred while processing "
                f"{file_path.name}: {e}"
            ),
        )
        if config.fail_fast:
            raise err from e
        all_errors.append(err)


def load_and_process_lesson_yamls(
    config: YAMLProcessorConfig,
) -> Tuple[List[Lesson], List[YAMLProcessingError]]:
    """
    Discover and process all lesson YAML files under the configured source directory.

    Two files declaring the same lesson id are reported as an error; the first
    one (in sorted path order) is kept.

    Returns:
        Tuple[List[Lesson], List[YAMLProcessingError]]: All successfully parsed lessons and every error encountered.
    """
    processor = YAMLProcessor(config)

    if not config.source_directory.exists():
        return [], [
            YAMLProcessingError(
                file_path=config.source_directory,
                message=(
                    "Source directory does not exist: "
                    f"{config.source_directory}"
                ),
            )
        ]

    yaml_files = sorted(
        list(config.source_directory.rglob("*.yaml"))
        + list(config.source_directory.rglob("*.yml"))
    )

    logger.info(
        "Found %s YAML files to process in %s",
        len(yaml_files),
        config.source_directory,
    )

    all_lessons: List[Lesson] = []
    all_errors: List[YAMLProcessingError] = []

    for file_path in yaml_files:
        lessons: List[Lesson] = []
        _process_file_wrapper(
            processor,
            file_path,
            config,
            lessons,
            all_errors,
        )
        for lesson in lessons:
            if any(known.lesson_id == lesson.lesson_id for known in all_lessons):
                err = YAMLProcessingError(
                    file_path=file_path,
                    message=f"Lesson '{lesson.lesson_id}' is already defined by another file.",
                )
                if config.fail_fast:
                    raise err
                all_errors.append(err)
            else:
                all_lessons.append(lesson)

    logger.info(
        "Successfully processed %s lessons from %s files with %s errors.",
        len(all_lessons),
        len(yaml_files),
        len(all_errors),
    )

    return all_lessons, all_errors
