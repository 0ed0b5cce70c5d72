"""エントリーポイント: uv run python -m card_template_normalizer"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Sequence

from pydantic import ValidationError

from card_template_normalizer.application.analyzer_service import TemplateUploadAnalyzer
from card_template_normalizer.application.normalization_service import TemplateNormalizer
from card_template_normalizer.domain.errors import IncompatibleImage, TemplateNormalizationError
from card_template_normalizer.domain.template_type import (
    CR80_300DPI_SIZE,
    CR80_600DPI_SIZE,
    CR80_HEIGHT_INCHES,
    CR80_HEIGHT_MM,
    CR80_WIDTH_INCHES,
    CR80_WIDTH_MM,
    TemplateSpec,
)
from card_template_normalizer.infrastructure.image_io import (
    load_image,
    read_image_dimensions,
    save_image,
)
from card_template_normalizer.infrastructure.settings import get_settings

EXIT_ERROR = 1
EXIT_INCOMPATIBLE = 2


def _build_parser(default_type: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="card_template_normalizer",
        description="Analyze and normalize card / wallet template uploads.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="analyze an image against a template type")
    analyze.add_argument("image")
    analyze.add_argument("--type", dest="type_id", default=default_type)
    analyze.add_argument(
        "--preview", metavar="PATH",
        help="write a crop preview image (width from TEMPLATE_NORMALIZER_PREVIEW_WIDTH)",
    )

    suggest = sub.add_parser("suggest", help="suggest the best matching template type")
    suggest.add_argument("image")

    normalize = sub.add_parser("normalize", help="crop and resize an image to a template type")
    normalize.add_argument("image")
    normalize.add_argument("output")
    normalize.add_argument("--type", dest="type_id", default=default_type)
    normalize.add_argument(
        "--force", action="store_true",
        help="process the image even if its proportions are not compatible",
    )

    sub.add_parser("types", help="list template types")
    return parser


def _print_json(payload: object) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _describe_type(spec: TemplateSpec) -> dict[str, object]:
    entry: dict[str, object] = {
        "id": spec.id,
        "name": spec.name,
        "width": spec.target_width,
        "height": spec.target_height,
        "aspect_ratio": spec.target_aspect_ratio,
        "category": spec.category.value,
    }
    # CR80 サイズの種別には印刷寸法を添える
    if spec.size == CR80_300DPI_SIZE:
        entry["print_size"] = {
            "inches": [CR80_WIDTH_INCHES, CR80_HEIGHT_INCHES],
            "mm": [CR80_WIDTH_MM, CR80_HEIGHT_MM],
            "dpi_300": list(CR80_300DPI_SIZE),
            "dpi_600": list(CR80_600DPI_SIZE),
        }
    return entry


def _run(args: argparse.Namespace, analyzer: TemplateUploadAnalyzer) -> int:
    if args.command == "types":
        _print_json([_describe_type(spec) for spec in analyzer.registry])
        return 0

    if args.command == "analyze":
        width, height = read_image_dimensions(args.image)
        analysis = analyzer.analyze(width, height, args.type_id)
        if args.preview:
            preview = TemplateNormalizer(analyzer).preview(
                load_image(args.image), args.type_id,
            )
            save_image(preview, args.preview)
        _print_json({
            "analysis": analysis.to_dict(),
            "prompt": analyzer.prompt(analysis).to_dict(),
        })
        return 0

    if args.command == "suggest":
        width, height = read_image_dimensions(args.image)
        suggestion = analyzer.suggest_template_type(width, height)
        _print_json({
            "suggested": suggestion.suggested,
            "analysis": suggestion.analysis.to_dict(),
            "alternatives": [
                {"id": type_id, "status": a.status.value, "quality": a.quality_rating.value}
                for type_id, a in suggestion.alternatives
            ],
        })
        return 0

    normalizer = TemplateNormalizer(analyzer)
    normalized = normalizer.normalize_and_save(
        args.image, args.output, args.type_id, force=args.force,
    )
    _print_json(normalized.metadata())
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"error: invalid configuration: {e}", file=sys.stderr)
        return EXIT_ERROR
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = _build_parser(settings.default_template_type).parse_args(argv)

    try:
        return _run(args, TemplateUploadAnalyzer())
    except IncompatibleImage as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_INCOMPATIBLE
    except TemplateNormalizationError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
