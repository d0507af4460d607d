from coderepo_rag.common.schemas import CodeChunk
from coderepo_rag.retrieval.code_analysis import (
    build_chunk_header,
    detect_language,
    extract_class_names,
    is_controller,
    is_repository,
    is_service,
    is_test,
    structural_tags,
)


def test_detect_language_by_extension():
    """
    Languages are resolved from the extension; unknown ones fall back.
    """
    assert detect_language("src/App.java") == "java"
    assert detect_language("web/index.TSX") == "typescript"
    assert detect_language("Makefile") == "unknown"


def test_role_detection_uses_path_or_annotations():
    """
    Roles are detected from the file path or from framework annotations.
    """
    assert is_controller("web/UserController.java", "")
    assert is_controller("web/Users.java", "@RestController\nclass Users {}")
    assert is_service("app/OrderService.kt", "")
    assert is_service("app/Orders.java", "@Service")
    assert is_repository("db/UserDao.java", "")
    assert is_repository("db/Users.java", "@Repository")
    assert is_test("tests/parser.py", "")
    assert is_test("parser_check.py", "def test_parse():\n    pass")
    assert not is_controller("lib/util.py", "def helper(): pass")


def test_extract_class_names_deduplicates_in_order():
    """
    Declared classes, interfaces and enums are returned once each.
    """
    content = "public class Foo {}\ninterface Bar {}\nenum Baz {}\nclass Foo {}"

    assert extract_class_names(content) == ["Foo", "Bar", "Baz"]


def test_build_chunk_header_lists_roles_and_types():
    """
    The header names the file, any role annotations and declared types.
    """
    chunk = CodeChunk(
        content="@Service\npublic class PaymentService {}",
        file_path="src/PaymentService.java",
        repository_url="r",
    )

    header = build_chunk_header(chunk)

    assert header == (
        "File: src/PaymentService.java\n"
        "Annotations: service\n"
        "Types: PaymentService\n\n"
    )


def test_build_chunk_header_plain_file():
    """
    Files without roles or types get only the file line.
    """
    chunk = CodeChunk(content="x = 1", file_path="lib/util.py", repository_url="r")
    tags = structural_tags(chunk.file_path, chunk.content)

    assert tags["language"] == "python"
    assert tags["class_names"] == []
    assert build_chunk_header(chunk, tags) == "File: lib/util.py\n\n"
