"""
Resume text extraction for JobRec.

Turns a PDF, DOCX or plain text resume into a single line of text ready for
embedding.
"""

from pathlib import Path
from typing import Dict, Optional

from rich.console import Console

console = Console()


class ResumeProcessor:
    """Validates resume files and extracts their text content."""

    SUPPORTED_EXTENSIONS = {'.pdf', '.txt', '.md', '.docx'}
    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB limit

    def extract_text(self, file_path: str) -> str:
        """
        Extract normalized text from a resume file.

        Args:
            file_path: Path to the resume file

        Returns:
            Resume text with newlines and whitespace runs collapsed

        Raises:
            ValueError: The file is invalid or holds no extractable text
        """
        path = Path(file_path)

        validation_error = self._validate_file(path)
        if validation_error:
            raise ValueError(validation_error)

        text = self._normalize(self._extract_text_content(path))
        if not text:
            raise ValueError(f"No text content could be extracted from {file_path}")

        console.print(f"[dim]Extracted {len(text)} characters of text from {path.name}[/dim]")
        return text

    def _validate_file(self, path: Path) -> Optional[str]:
        """Validate resume file. Returns error message if invalid, None if valid."""
        if not path.exists():
            return f"File does not exist: {path}"

        if not path.is_file():
            return f"Path is not a file: {path}"

        if path.suffix.lower() not in self.SUPPORTED_EXTENSIONS:
            return f"Unsupported file type: {path.suffix}. Supported: {', '.join(sorted(self.SUPPORTED_EXTENSIONS))}"

        file_size = path.stat().st_size
        if file_size > self.MAX_FILE_SIZE:
            return f"File too large: {file_size / (1024*1024):.1f}MB (max: {self.MAX_FILE_SIZE / (1024*1024):.1f}MB)"

        if file_size == 0:
            return "File is empty"

        return None

    def _extract_text_content(self, path: Path) -> str:
        """Extract text content from resume file based on file type."""
        file_extension = path.suffix.lower()

        if file_extension == '.pdf':
            return self._extract_pdf_text(path)
        elif file_extension == '.docx':
            return self._extract_docx_text(path)
        elif file_extension in ['.txt', '.md']:
            return self._extract_text_file(path)
        else:
            raise ValueError(f"Unsupported file type: {file_extension}")

    def _extract_pdf_text(self, path: Path) -> str:
        """Extract text from PDF file using PyPDF2."""
        import PyPDF2

        text_content = []

        with open(path, 'rb') as file:
            pdf_reader = PyPDF2.PdfReader(file)

            for page_num, page in enumerate(pdf_reader.pages):
                try:
                    page_text = page.extract_text() or ""
                except Exception as e:
                    console.print(f"[yellow]Warning: Could not extract text from page {page_num + 1}: {e}[/yellow]")
                    continue
                if page_text.strip():
                    text_content.append(page_text)

        return '\n\n'.join(text_content)

    def _extract_docx_text(self, path: Path) -> str:
        """Extract text from DOCX file using python-docx."""
        from docx import Document

        doc = Document(path)
        text_content = [p.text.strip() for p in doc.paragraphs if p.text.strip()]

        for table in doc.tables:
            for row in table.rows:
                row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if row_text:
                    text_content.append(' | '.join(row_text))

        return '\n'.join(text_content)

    def _extract_text_file(self, path: Path) -> str:
        """Extract text from plain text or markdown file."""
        for encoding in ('utf-8', 'cp1252', 'latin-1'):
            try:
                return path.read_text(encoding=encoding)
            except UnicodeDecodeError:
                continue

        raise ValueError(f"Could not decode {path} with any supported encoding")

    @staticmethod
    def _normalize(text: str) -> str:
        return ' '.join((text or '').split())

    def get_file_info(self, file_path: str) -> Dict:
        """Get basic file information without processing."""
        path = Path(file_path)

        if not path.exists():
            return {"error": "File not found"}

        stat = path.stat()
        return {
            "name": path.name,
            "size": stat.st_size,
            "size_mb": round(stat.st_size / (1024 * 1024), 2),
            "extension": path.suffix.lower(),
            "supported": path.suffix.lower() in self.SUPPORTED_EXTENSIONS,
            "too_large": stat.st_size > self.MAX_FILE_SIZE
        }
