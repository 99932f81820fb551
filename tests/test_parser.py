import pytest
from pathlib import Path

from reviewcore.parser import (
    YAMLProcessor,
    YAMLProcessorConfig,
    load_and_process_lesson_yamls,
)
from reviewcore.yaml_models import YAMLProcessingError


# --- Test Fixtures ---


def create_yaml_file(base_path: Path, filename: str, content: str) -> Path:
    file_path = base_path / filename
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(content, encoding="utf-8")
    return file_path


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    src = tmp_path / "lessons"
    src.mkdir()
    return src


# --- Sample YAML Content Strings ---

VALID_LESSON_CONTENT = """
lesson: greetings-1
title: Greetings
items:
  - id: konnichiwa
    prompt: こんにちは
    answer: hello
    difficulty: 2
  - id: sayonara
    prompt: さようなら
    answer: goodbye
"""

SECOND_LESSON_CONTENT = """
lesson: numbers-1
items:
  - id: ichi
    prompt: 一
    answer: one
    difficulty: 1
"""

HTML_LESSON_CONTENT = """
lesson: html-lesson
title: <b>Bold</b> title
items:
  - id: tagged
    prompt: <script>alert(1)</script>What is <em>this</em>?
    answer: <p>An answer</p>
  - id: only-markup
    prompt: <br/>
    answer: text
"""

OUT_OF_RANGE_CONTENT = """
lesson: mixed-1
items:
  - id: good
    prompt: fine
    answer: fine
  - id: too-hard
    prompt: hard
    answer: hard
    difficulty: 9
  - id: good
    prompt: duplicate id
    answer: duplicate
"""


class TestYAMLProcessor:
    def test_valid_lesson(self, source_dir: Path):
        path = create_yaml_file(source_dir, "greetings.yaml", VALID_LESSON_CONTENT)
        processor = YAMLProcessor(YAMLProcessorConfig(source_directory=source_dir))

        lessons, errors = processor.process_file(path)

        assert not errors
        assert len(lessons) == 1
        lesson = lessons[0]
        assert lesson.lesson_id == "greetings-1"
        assert lesson.title == "Greetings"
        assert [i.item_id for i in lesson.items] == ["konnichiwa", "sayonara"]
        assert lesson.items[0].difficulty == 2
        assert lesson.items[1].difficulty == 3
        assert all(i.lesson_id == "greetings-1" for i in lesson.items)

    def test_html_is_stripped(self, source_dir: Path):
        path = create_yaml_file(source_dir, "html.yaml", HTML_LESSON_CONTENT)
        processor = YAMLProcessor(YAMLProcessorConfig(source_directory=source_dir))

        lessons, errors = processor.process_file(path)

        item = lessons[0].items[0]
        assert "<" not in item.prompt
        assert "What is this?" in item.prompt
        assert item.answer == "An answer"
        assert lessons[0].title == "Bold title"
        # An item that is nothing but markup is rejected.
        assert len(errors) == 1
        assert errors[0].item_id == "only-markup"

    def test_out_of_range_difficulty_rejects_file(self, source_dir: Path):
        path = create_yaml_file(source_dir, "mixed.yaml", OUT_OF_RANGE_CONTENT)
        processor = YAMLProcessor(YAMLProcessorConfig(source_directory=source_dir))

        with pytest.raises(YAMLProcessingError, match="difficulty"):
            processor.process_file(path)

    def test_duplicate_item_ids_within_lesson(self, source_dir: Path):
        content = """
lesson: dupes
items:
  - id: same
    prompt: first
    answer: one
  - id: same
    prompt: second
    answer: two
"""
        path = create_yaml_file(source_dir, "dupes.yaml", content)
        processor = YAMLProcessor(YAMLProcessorConfig(source_directory=source_dir))

        lessons, errors = processor.process_file(path)

        assert [i.prompt for i in lessons[0].items] == ["first"]
        assert len(errors) == 1
        assert "Duplicate item id" in errors[0].message
        assert errors[0].item_index == 1

    @pytest.mark.parametrize(
        "content, expected",
        [
            ("items: []\n", "lesson"),
            ("lesson: Not Kebab\nitems:\n  - {id: a, prompt: p, answer: a}\n", "lesson"),
            ("lesson: ok\nitems: []\n", "items"),
            ("lesson: ok\nitems:\n  - {id: a, prompt: p}\n", "answer"),
            ("lesson: ok\nextra: 1\nitems:\n  - {id: a, prompt: p, answer: a}\n", "extra"),
        ],
    )
    def test_schema_violations(self, source_dir: Path, content: str, expected: str):
        path = create_yaml_file(source_dir, "bad.yaml", content)
        processor = YAMLProcessor(YAMLProcessorConfig(source_directory=source_dir))

        with pytest.raises(YAMLProcessingError, match="Validation error in field") as exc_info:
            processor.process_file(path)
        assert expected in exc_info.value.message

    def test_yaml_not_a_dictionary(self, source_dir: Path):
        path = create_yaml_file(source_dir, "list.yaml", "- just\n- a list\n")
        processor = YAMLProcessor(YAMLProcessorConfig(source_directory=source_dir))

        with pytest.raises(YAMLProcessingError, match="must be a dictionary"):
            processor.process_file(path)

    def test_invalid_yaml_syntax(self, source_dir: Path):
        path = create_yaml_file(source_dir, "broken.yaml", "lesson: [unclosed\n")
        processor = YAMLProcessor(YAMLProcessorConfig(source_directory=source_dir))

        with pytest.raises(YAMLProcessingError, match="Invalid YAML syntax"):
            processor.process_file(path)

    def test_error_string_includes_context(self, source_dir: Path):
        err = YAMLProcessingError(
            file_path=source_dir / "x.yaml",
            message="boom",
            item_index=2,
            item_id="abc",
        )
        assert str(err) == "File: x.yaml | Item Index: 2 | Item: 'abc' | Error: boom"


class TestLoadAndProcessLessonYamls:
    def test_empty_source_directory(self, source_dir: Path):
        lessons, errors = load_and_process_lesson_yamls(
            YAMLProcessorConfig(source_directory=source_dir)
        )
        assert lessons == []
        assert errors == []

    def test_multiple_files_and_recursion(self, source_dir: Path):
        create_yaml_file(source_dir, "greetings.yaml", VALID_LESSON_CONTENT)
        create_yaml_file(source_dir, "nested/numbers.yml", SECOND_LESSON_CONTENT)

        lessons, errors = load_and_process_lesson_yamls(
            YAMLProcessorConfig(source_directory=source_dir)
        )

        assert not errors
        assert {lesson.lesson_id for lesson in lessons} == {"greetings-1", "numbers-1"}

    def test_error_aggregation_without_fail_fast(self, source_dir: Path):
        create_yaml_file(source_dir, "a_good.yaml", VALID_LESSON_CONTENT)
        create_yaml_file(source_dir, "b_bad.yaml", "lesson: [unclosed\n")

        lessons, errors = load_and_process_lesson_yamls(
            YAMLProcessorConfig(source_directory=source_dir)
        )

        assert [lesson.lesson_id for lesson in lessons] == ["greetings-1"]
        assert len(errors) == 1
        assert errors[0].file_path.name == "b_bad.yaml"

    def test_fail_fast_raises_first_error(self, source_dir: Path):
        create_yaml_file(source_dir, "a_bad.yaml", "lesson: [unclosed\n")
        create_yaml_file(source_dir, "b_good.yaml", VALID_LESSON_CONTENT)

        with pytest.raises(YAMLProcessingError, match="Invalid YAML syntax"):
            load_and_process_lesson_yamls(
                YAMLProcessorConfig(source_directory=source_dir, fail_fast=True)
            )

    def test_fail_fast_on_item_error(self, source_dir: Path):
        create_yaml_file(source_dir, "html.yaml", HTML_LESSON_CONTENT)

        with pytest.raises(YAMLProcessingError, match="empty after HTML removal"):
            load_and_process_lesson_yamls(
                YAMLProcessorConfig(source_directory=source_dir, fail_fast=True)
            )

    def test_duplicate_lesson_across_files(self, source_dir: Path):
        create_yaml_file(source_dir, "a.yaml", VALID_LESSON_CONTENT)
        create_yaml_file(source_dir, "b.yaml", VALID_LESSON_CONTENT)

        lessons, errors = load_and_process_lesson_yamls(
            YAMLProcessorConfig(source_directory=source_dir)
        )

        assert len(lessons) == 1
        assert len(errors) == 1
        assert "already defined" in errors[0].message
        assert errors[0].file_path.name == "b.yaml"

    def test_non_existent_source_dir(self, tmp_path: Path):
        lessons, errors = load_and_process_lesson_yamls(
            YAMLProcessorConfig(source_directory=tmp_path / "missing")
        )
        assert not lessons
        assert "Source directory does not exist" in errors[0].message

    def test_io_error_on_read(self, source_dir: Path, mocker):
        create_yaml_file(source_dir, "lesson.yaml", VALID_LESSON_CONTENT)
        mocker.patch.object(Path, "read_text", side_effect=IOError("Disk on fire"))

        lessons, errors = load_and_process_lesson_yamls(
            YAMLProcessorConfig(source_directory=source_dir)
        )

        assert not lessons
        assert len(errors) == 1
        assert "Could not read file: Disk on fire" in errors[0].message

    def test_file_not_found_error_on_read(self, source_dir: Path, mocker):
        create_yaml_file(source_dir, "lesson.yaml", VALID_LESSON_CONTENT)
        mocker.patch.object(
            Path, "read_text", side_effect=FileNotFoundError("File disappeared")
        )

        lessons, errors = load_and_process_lesson_yamls(
            YAMLProcessorConfig(source_directory=source_dir)
        )

        assert not lessons
        assert "File not found" in errors[0].message
        assert errors[0].file_path.name == "lesson.yaml"

    def test_unexpected_error_during_file_processing(self, source_dir: Path, mocker):
        create_yaml_file(source_dir, "lesson.yaml", VALID_LESSON_CONTENT)
        mocker.patch(
            "reviewcore.parser.YAMLProcessor.process_file",
            side_effect=Exception("Something went very wrong"),
        )

        lessons, errors = load_and_process_lesson_yamls(
            YAMLProcessorConfig(source_directory=source_dir)
        )

        assert not lessons
        assert "An unexpected error occurred while processing" in errors[0].message
        assert "Something went very wrong" in errors[0].message
