from __future__ import annotations

import argparse
import json
from pathlib import Path

from app.modules.questions.cache import DocumentIdentity
from app.modules.questions.generator import QuestionGenerator
from app.modules.questions.models import Quantities
from app.modules.questions.text import DocumentType, classify_file_type, encode_document


def _load_document(args: argparse.Namespace) -> tuple[str, str, str, DocumentIdentity]:
    if args.text and args.file:
        raise SystemExit("Provide either --text or --file, not both")
    if args.file:
        path = Path(args.file)
        data = path.read_bytes()
        identity = DocumentIdentity.for_bytes(
            path.name, data, modified_at=path.stat().st_mtime
        )
        return (
            encode_document(data, path.name),
            path.name,
            classify_file_type(path.name).value,
            identity,
        )
    if args.text:
        name = args.name or "input.txt"
        return (
            args.text,
            name,
            DocumentType.TEXT.value,
            DocumentIdentity.for_text(name, args.text),
        )
    raise SystemExit("--text or --file is required")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="quizgen", description="Study question generator CLI"
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    g = sub.add_parser("generate", help="Generate questions from a document or text")
    g.add_argument("--file", "-f", help="Path to the document")
    g.add_argument("--text", "-t", help="Inline text or topic")
    g.add_argument("--name", help="File name to report for --text input")
    g.add_argument("--flashcards", type=int, default=5)
    g.add_argument("--mcqs", type=int, default=5)
    g.add_argument("--matching", type=int, default=2)
    g.add_argument("--true-false", type=int, default=5)
    g.add_argument("--fill-in-blanks", type=int, default=5)
    g.add_argument("--instruction", "-i", help="Extra instruction for the model")

    args = parser.parse_args(argv)
    if args.cmd == "generate":
        content, file_name, file_type, identity = _load_document(args)
        quantities = Quantities(
            flashcards=args.flashcards,
            mcqs=args.mcqs,
            matching=args.matching,
            true_false=args.true_false,
            fill_in_blanks=args.fill_in_blanks,
        )
        svc = QuestionGenerator()
        result = svc.generate_sync(
            content,
            file_name,
            file_type,
            quantities,
            args.instruction,
            identity=identity,
        )
        print(json.dumps(result.model_dump(by_alias=True, mode="json"), indent=2))
        return 0

    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
