"""documentation content tests"""

from editor_lsp.session.content import format_contents, is_empty_documentation


class TestIsEmptyDocumentation:
    """empty documentation detection"""

    def test_none_and_empty(self):
        assert is_empty_documentation(None) is True
        assert is_empty_documentation("") is True
        assert is_empty_documentation([]) is True

    def test_whitespace_and_backticks(self):
        assert is_empty_documentation("   \n\t") is True
        assert is_empty_documentation("```") is True
        assert is_empty_documentation("```\n```") is True
        assert is_empty_documentation("``` \n ```") is True

    def test_text(self):
        assert is_empty_documentation("Hello") is False
        assert is_empty_documentation("```python\nx\n```") is False

    def test_markup_content(self):
        assert is_empty_documentation({"kind": "markdown", "value": ""}) is True
        assert is_empty_documentation({"kind": "markdown", "value": "```\n```"}) is True
        assert is_empty_documentation({"kind": "plaintext", "value": "docs"}) is False

    def test_lists(self):
        assert is_empty_documentation(["", "```"]) is True
        assert is_empty_documentation(["", "real"]) is False

    def test_non_string_value(self):
        assert is_empty_documentation({"kind": "markdown", "value": 42}) is False


class TestFormatContents:
    """flattening hover / documentation content"""

    def test_plain_string(self):
        assert format_contents("hello") == "hello"

    def test_markdown_kept_as_source_by_default(self):
        assert format_contents({"kind": "markdown", "value": "# Title"}) == "# Title"

    def test_markdown_rendered_when_html_allowed(self):
        assert format_contents({"kind": "markdown", "value": "# Title"}, allow_html=True) == "<h1>Title</h1>\n"

    def test_plaintext_never_rendered(self):
        assert format_contents({"kind": "plaintext", "value": "# Title"}, allow_html=True) == "# Title"

    def test_marked_string_object(self):
        assert format_contents({"language": "python", "value": "x = 1"}) == "x = 1"
        rendered = format_contents({"language": "python", "value": "x = 1"}, allow_html=True)
        assert '<code class="language-python">x = 1' in rendered

    def test_list(self):
        assert format_contents(["a", {"language": "python", "value": "b"}]) == "a\n\nb\n\n"

    def test_empty(self):
        assert format_contents(None) == ""
        assert format_contents([]) == ""
