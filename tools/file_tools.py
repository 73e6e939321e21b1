"""Filesystem tools: thin wrappers around standard file operations."""

import os
import shutil
from datetime import datetime

from gemchat.response import ToolResult
from tools.base_tool import Tool, ToolParameter


class ListDirectoryTool(Tool):
    name = "listDirectory"
    description = "List files and directories in the current working directory with basic metadata."
    parameters = {
        "directory": ToolParameter(
            str, "The directory to list. If omitted, the current working directory is used."
        ),
    }
    required_args: list[str] = []

    async def execute(self, **kwargs) -> ToolResult:
        directory = kwargs.get("directory") or os.getcwd()
        full_path = self.resolve_path(directory)
        items = []
        for item in sorted(os.listdir(full_path)):
            item_path = os.path.join(full_path, item)
            stats = os.stat(item_path)
            items.append({
                "name": item,
                "isFile": os.path.isfile(item_path),
                "isDirectory": os.path.isdir(item_path),
                "size": stats.st_size,
                "modified": datetime.fromtimestamp(stats.st_mtime).isoformat(),
            })
        return ToolResult.ok(items=items)


class ReadFileTool(Tool):
    name = "readFile"
    description = "Read the contents of a specified file."
    parameters = {
        "fileName": ToolParameter(str, "The name or path of the file to be read."),
    }
    required_args = ["fileName"]

    async def execute(self, **kwargs) -> ToolResult:
        file_name = kwargs.get("fileName", "")
        full_path = self.resolve_path(file_name)
        if not os.path.exists(full_path):
            similar = self._similar_files(file_name)
            return ToolResult.fail(
                f"File '{file_name}' not found. Similar files: {', '.join(similar)}"
            )
        with open(full_path, "r", encoding="utf-8", errors="replace", newline="") as f:
            content = f.read()
        return ToolResult.ok(content=content)

    def _similar_files(self, name: str) -> list[str]:
        """Case-insensitive substring matches in the working directory."""
        needle = name.lower()
        matches = [f for f in sorted(os.listdir(os.getcwd())) if needle in f.lower()]
        return matches[: self.config.tools.max_suggestions]


class CreateFileTool(Tool):
    name = "createFile"
    description = "Create a file with the specified content."
    parameters = {
        "fileName": ToolParameter(str, "The name or path for the new file."),
        "content": ToolParameter(str, "The content to write into the file."),
    }
    required_args = ["fileName", "content"]

    async def execute(self, **kwargs) -> ToolResult:
        file_name = kwargs["fileName"]
        full_path = self.resolve_path(file_name)
        with open(full_path, "w", encoding="utf-8", newline="") as f:
            f.write(kwargs["content"])
        return ToolResult.ok(message=f"File '{file_name}' created successfully.")


class UpdateFileTool(Tool):
    name = "updateFile"
    description = "Update an existing file with new content (overwrites existing content)."
    parameters = {
        "fileName": ToolParameter(str, "The name or path of the file to be updated."),
        "content": ToolParameter(str, "The new content to write into the file."),
    }
    required_args = ["fileName", "content"]

    async def execute(self, **kwargs) -> ToolResult:
        file_name = kwargs["fileName"]
        full_path = self.resolve_path(file_name)
        if not os.path.exists(full_path):
            return ToolResult.fail(f"File '{file_name}' does not exist.")
        with open(full_path, "w", encoding="utf-8", newline="") as f:
            f.write(kwargs["content"])
        return ToolResult.ok(message=f"File '{file_name}' updated successfully.")


class CreateFolderTool(Tool):
    name = "createFolder"
    description = "Create a new folder in the specified path."
    parameters = {
        "folderPath": ToolParameter(str, "The path where the folder should be created."),
    }
    required_args = ["folderPath"]

    async def execute(self, **kwargs) -> ToolResult:
        folder_path = kwargs["folderPath"]
        os.makedirs(self.resolve_path(folder_path), exist_ok=True)
        return ToolResult.ok(message=f"Folder '{folder_path}' created successfully.")


class DeleteFolderTool(Tool):
    name = "deleteFolder"
    description = "Delete a folder and its contents."
    parameters = {
        "folderPath": ToolParameter(str, "The path of the folder to delete."),
        "recursive": ToolParameter(bool, "Whether to recursively delete the folder contents."),
    }
    required_args = ["folderPath"]

    async def execute(self, **kwargs) -> ToolResult:
        folder_path = kwargs["folderPath"]
        recursive = kwargs.get("recursive", True)
        full_path = self.resolve_path(folder_path)
        # Missing folders count as deleted; a plain file or link is removed as-is.
        if os.path.isdir(full_path) and not os.path.islink(full_path):
            if recursive:
                shutil.rmtree(full_path)
            else:
                os.rmdir(full_path)
        elif os.path.lexists(full_path):
            os.remove(full_path)
        return ToolResult.ok(message=f"Folder '{folder_path}' deleted successfully.")


class RenameFolderTool(Tool):
    name = "renameFolder"
    description = "Rename a folder."
    parameters = {
        "oldPath": ToolParameter(str, "The current path of the folder."),
        "newPath": ToolParameter(str, "The new path/name for the folder."),
    }
    required_args = ["oldPath", "newPath"]

    async def execute(self, **kwargs) -> ToolResult:
        old_path, new_path = kwargs["oldPath"], kwargs["newPath"]
        os.rename(self.resolve_path(old_path), self.resolve_path(new_path))
        return ToolResult.ok(
            message=f"Folder renamed from '{old_path}' to '{new_path}' successfully."
        )


class SearchFilesTool(Tool):
    name = "searchFiles"
    description = "Search for files in a directory matching a pattern."
    parameters = {
        "directory": ToolParameter(
            str, "The directory to search in. If omitted, searches in current directory."
        ),
        "pattern": ToolParameter(str, "The text to look for in file names (case-insensitive)."),
        "recursive": ToolParameter(bool, "Whether to search recursively in subdirectories."),
    }
    required_args = ["pattern"]

    async def execute(self, **kwargs) -> ToolResult:
        pattern = kwargs["pattern"]
        directory = kwargs.get("directory") or "."
        recursive = kwargs.get("recursive", True)
        root = self.resolve_path(directory)
        cwd = os.getcwd()
        needle = pattern.lower()
        results: list[str] = []

        def search_in_dir(path: str):
            for item in sorted(os.listdir(path)):
                item_path = os.path.join(path, item)
                if os.path.isfile(item_path):
                    if needle in item.lower():
                        results.append(os.path.relpath(item_path, cwd))
                elif os.path.isdir(item_path) and recursive:
                    search_in_dir(item_path)

        search_in_dir(root)
        return ToolResult.ok(
            results=results,
            count=len(results),
            message=f"Found {len(results)} files matching pattern '{pattern}'",
        )


class MoveFileTool(Tool):
    name = "moveFile"
    description = "Move a file from one location to another."
    parameters = {
        "sourcePath": ToolParameter(str, "The current path of the file."),
        "destinationPath": ToolParameter(str, "The destination path for the file."),
    }
    required_args = ["sourcePath", "destinationPath"]

    async def execute(self, **kwargs) -> ToolResult:
        source, destination = kwargs["sourcePath"], kwargs["destinationPath"]
        os.rename(self.resolve_path(source), self.resolve_path(destination))
        return ToolResult.ok(
            message=f"File moved from '{source}' to '{destination}' successfully."
        )


class CopyFileTool(Tool):
    name = "copyFile"
    description = "Copy a file from one location to another."
    parameters = {
        "sourcePath": ToolParameter(str, "The path of the file to copy."),
        "destinationPath": ToolParameter(str, "The destination path for the copy."),
    }
    required_args = ["sourcePath", "destinationPath"]

    async def execute(self, **kwargs) -> ToolResult:
        source, destination = kwargs["sourcePath"], kwargs["destinationPath"]
        shutil.copyfile(self.resolve_path(source), self.resolve_path(destination))
        return ToolResult.ok(
            message=f"File copied from '{source}' to '{destination}' successfully."
        )


FILE_TOOLS: list[type[Tool]] = [
    ListDirectoryTool,
    ReadFileTool,
    CreateFileTool,
    UpdateFileTool,
    CreateFolderTool,
    DeleteFolderTool,
    RenameFolderTool,
    SearchFilesTool,
    MoveFileTool,
    CopyFileTool,
]
