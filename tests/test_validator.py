import unittest

from gemchat.exceptions import ValidationError
from gemchat.response import ToolCall
from tools.file_tools import CreateFileTool, ListDirectoryTool, MoveFileTool, UpdateFileTool
from tools.validator import missing_parameters, validate_tool_call


class TestValidator(unittest.TestCase):
    def test_valid_call(self):
        result = validate_tool_call(
            ToolCall("createFile", {"fileName": "a.txt", "content": "x"}),
            CreateFileTool.declaration(),
        )
        self.assertTrue(result.ok)
        result.raise_for_error()

    def test_no_required_params(self):
        result = validate_tool_call(ToolCall("listDirectory", {}), ListDirectoryTool.declaration())
        self.assertTrue(result.ok)

    def test_unknown_tool(self):
        result = validate_tool_call(ToolCall("rmrf", {}), None)
        self.assertFalse(result.ok)
        self.assertEqual(result.kind, "unknown_tool")
        self.assertEqual(result.message, "Unknown function call: rmrf")

    def test_all_missing_parameters_reported_in_order(self):
        result = validate_tool_call(ToolCall("moveFile", {}), MoveFileTool.declaration())
        self.assertEqual(result.kind, "missing_parameters")
        self.assertEqual(result.missing, ["sourcePath", "destinationPath"])
        self.assertEqual(
            result.message,
            "Missing required parameters for moveFile: sourcePath, destinationPath",
        )

    def test_empty_string_counts_as_missing(self):
        decl = MoveFileTool.declaration()
        self.assertEqual(
            missing_parameters(decl, {"sourcePath": "", "destinationPath": "b"}),
            ["sourcePath"],
        )

    def test_blank_content_rejected(self):
        result = validate_tool_call(
            ToolCall("updateFile", {"fileName": "a.txt", "content": "   \n"}),
            UpdateFileTool.declaration(),
        )
        self.assertEqual(result.kind, "empty_content")
        self.assertEqual(result.message, "Empty content provided for updateFile operation")

    def test_missing_content_reported_as_missing_parameter(self):
        result = validate_tool_call(
            ToolCall("createFile", {"fileName": "a.txt"}),
            CreateFileTool.declaration(),
        )
        self.assertEqual(result.kind, "missing_parameters")
        self.assertEqual(result.message, "Missing required parameters for createFile: content")

    def test_raise_for_error(self):
        result = validate_tool_call(ToolCall("moveFile", {}), MoveFileTool.declaration())
        with self.assertRaises(ValidationError) as ctx:
            result.raise_for_error()
        self.assertEqual(ctx.exception.kind, "missing_parameters")
        self.assertIn("sourcePath", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
