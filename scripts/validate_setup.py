#!/usr/bin/env python
"""Validate the docsearch setup - dependencies, configuration and embedding backend."""
import sys
import asyncio
from pathlib import Path

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"

def print_success(msg):
    print(f"{GREEN}✓{RESET} {msg}")

def print_error(msg):
    print(f"{RED}✗{RESET} {msg}")

def print_info(msg):
    print(f"{BLUE}ℹ{RESET} {msg}")

def print_warning(msg):
    print(f"{YELLOW}⚠{RESET} {msg}")

def print_section(title):
    print(f"\n{BLUE}{'='*60}{RESET}")
    print(f"{BLUE}{title:^60}{RESET}")
    print(f"{BLUE}{'='*60}{RESET}\n")

async def main():
    print_section("docsearch - Setup Validation")

    errors = []
    warnings = []

    # 1. Python version check
    print_section("1. Python Environment")
    python_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    print_info(f"Python version: {python_version}")
    if sys.version_info >= (3, 9):
        print_success("Python version >= 3.9")
    else:
        print_error("Python version < 3.9 (required)")
        errors.append("Python version too old")

    # 2. Import core dependencies
    print_section("2. Core Dependencies")

    dependencies = [
        ("httpx", "HTTP client"),
        ("numpy", "Vector math"),
        ("pdfplumber", "PDF text extraction"),
        ("structlog", "Structured logging"),
        ("pytest", "Testing framework"),
    ]

    for module_name, description in dependencies:
        try:
            __import__(module_name)
            print_success(f"{description:30} ({module_name})")
        except ImportError as e:
            print_error(f"{description:30} ({module_name}) - {e}")
            errors.append(f"Missing: {module_name}")

    # 3. Test configuration
    print_section("3. Configuration")

    try:
        # Add parent directory to path to import docsearch
        sys.path.insert(0, str(Path(__file__).parent.parent))
        from docsearch import config

        print_success("Config loaded successfully")
        print_info(f"  Embedding backend: {config.EMBEDDING_BACKEND}")
        print_info(f"  Embedding model: {config.EMBEDDING_MODEL}")
        print_info(f"  Ollama URL: {config.OLLAMA_BASE_URL}")
        print_info(f"  Chunk size: {config.CHUNK_SIZE} chars")
        print_info(f"  Top-K results: {config.RETRIEVAL_TOP_K}")

        if config.DOCUMENT_PATH.is_file():
            print_success(f"Document found: {config.DOCUMENT_PATH}")
        else:
            print_warning(f"Document missing: {config.DOCUMENT_PATH}")
            print_info("  Set DOCUMENT_PATH or pass --document when searching")
            warnings.append("Default document missing")

    except Exception as e:
        print_error(f"Failed to load config: {e}")
        errors.append("Config loading failed")
        return errors, warnings

    if config.EMBEDDING_BACKEND != "ollama":
        print_info(f"\nSkipping Ollama checks (backend: {config.EMBEDDING_BACKEND})")
    else:
        # 4. Test embedding backend through the same loader the search uses
        print_section("4. Ollama Embedding Backend")

        from docsearch.errors import ModelLoadFailure
        from docsearch.rag.embedder import OllamaEmbedder

        embedder = OllamaEmbedder()
        try:
            async with embedder:
                print_success(f"Ollama service running at {config.OLLAMA_BASE_URL}")
                print_success(f"Embedding model available: {config.EMBEDDING_MODEL}")
                print_info(f"Embedding dimension: {embedder.dimension}")
        except ModelLoadFailure as e:
            print_error(f"Embedding backend not ready: {e}")
            print_info("  Make sure Ollama is running: ollama serve")
            print_info(f"  and the model is installed: ollama pull {config.EMBEDDING_MODEL}")
            errors.append("Embedding backend not ready")

    # 5. Summary
    print_section("Summary")

    if not errors:
        print_success("All checks passed! ✨")
        print_info("\n  Next step: docsearch --document <file.pdf>")
    else:
        print_error(f"Found {len(errors)} error(s):")
        for i, error in enumerate(errors, 1):
            print(f"  {i}. {error}")

    if warnings:
        print_warning(f"\nFound {len(warnings)} warning(s):")
        for i, warning in enumerate(warnings, 1):
            print(f"  {i}. {warning}")

    print()
    return errors, warnings

if __name__ == "__main__":
    errors, warnings = asyncio.run(main())
    sys.exit(1 if errors else 0)
