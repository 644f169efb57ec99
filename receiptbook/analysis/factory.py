import os

from dotenv import load_dotenv

from receiptbook.analysis.azure_client import DEFAULT_ENDPOINT, FormRecognizerClient
from receiptbook.analysis.base import DocumentAnalyzer

load_dotenv()


def get_document_analyzer() -> DocumentAnalyzer:
    """Return the configured document analysis provider."""
    provider = os.getenv("DOCUMENT_ANALYZER", "azure")
    if provider == "azure":
        api_key = os.getenv("AZURE_FORM_RECOGNIZER_KEY")
        if not api_key:
            raise ValueError("Could not find AZURE_FORM_RECOGNIZER_KEY in environment")
        endpoint = os.getenv("AZURE_FORM_RECOGNIZER_ENDPOINT", DEFAULT_ENDPOINT)
        return FormRecognizerClient(endpoint=endpoint, api_key=api_key)
    raise ValueError(f"Unknown document analyzer: {provider}")
