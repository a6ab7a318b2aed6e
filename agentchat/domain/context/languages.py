from typing import Dict, Optional
import posixpath


LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".dart": "dart",
    ".go": "go",
    ".java": "java",
    ".js": "javascript",
    ".jsx": "jsx",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".json": "json",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".lua": "lua",
    ".md": "markdown",
    ".php": "php",
    ".ps1": "powershell",
    ".py": "python",
    ".r": "r",
    ".rb": "ruby",
    ".rs": "rust",
    ".scala": "scala",
    ".sh": "shell",
    ".bash": "shell",
    ".zsh": "shell",
    ".sql": "sql",
    ".swift": "swift",
    ".tf": "tf",
    ".hcl": "tf",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".vue": "vue",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".abap": "abap",
    ".acds": "abap",
    ".asprog": "abap",
    ".sv": "systemverilog",
    ".svh": "systemverilog",
    ".vh": "systemverilog",
}


def language_for_path(path: str) -> Optional[str]:
    """Guess the programming language from a file extension"""
    if not path:
        return None
    extension = posixpath.splitext(path.replace("\\", "/"))[1].lower()
    return LANGUAGE_BY_EXTENSION.get(extension)
