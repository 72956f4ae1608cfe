from __future__ import annotations

from lingo.app.inputs.types import FileInspection, ResolvedInputFile

BINARY_SAMPLE_BYTES = 8192
BINARY_CONTROL_RATIO = 0.15


def appears_binary(data: bytes) -> bool:
    if not data:
        return False
    sample = data[:BINARY_SAMPLE_BYTES]
    if 0 in sample:
        return True
    control = sum(1 for byte in sample if byte < 7 or 13 < byte < 32)
    return control / len(sample) > BINARY_CONTROL_RATIO


def inspect_file(file: ResolvedInputFile) -> FileInspection:
    name = file.path.name
    try:
        data = file.path.read_bytes()
    except OSError:
        return FileInspection(file=file, error=f"Input file '{file.path}' not found.")

    if appears_binary(data):
        return FileInspection(
            file=file,
            error=f"'{name}' appears to be a binary file and cannot be translated.",
        )

    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return FileInspection(
            file=file,
            error=(
                f"'{name}' contains invalid UTF-8. Please re-encode the file as UTF-8 "
                "before translating."
            ),
        )

    if not text.strip():
        return FileInspection(file=file, warning=f"'{name}' is empty. Skipping.")

    return FileInspection(file=file, content=text)
