"""
Custom exception for when a CSV export cannot be matched to a known bank format.
"""


class UnsupportedCsvFormatError(Exception):
    """
    Raised when no registered CSV parser recognises the file header.

    This exception should include:
    - The filename that failed
    - The formats that were tried
    - Sample text from the top of the file
    """

    def __init__(self, message: str, filename: str = None, tried: list = None, sample_text: str = None):
        self.filename = filename
        self.tried = tried or []
        self.sample_text = sample_text

        details = []
        if filename:
            details.append(f"File: {filename}")
        if self.tried:
            details.append(f"Formats tried: {', '.join(self.tried)}")
        if sample_text:
            details.append(f"Sample: {sample_text[:200]}...")

        full_message = f"{message}\n" + "\n".join(details) if details else message
        super().__init__(full_message)
