import os
import sys
import argparse
import logging
from pathlib import Path
from dotenv import load_dotenv

from figma_specs import __version__
from figma_specs.config import Config
from figma_specs.extraction import Options, run, parse_node_ids, parse_scales
from figma_specs.figma_client import FigmaAPIError
from figma_specs.imager import ExportError
from figma_specs.utils import setup_logging


def build_parser(config: Config) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='figma-specs',
        description='Extract design tokens, colors, typography and image assets from Figma files'
    )
    parser.add_argument('--url', '-u', required=True, help='Figma file URL')
    parser.add_argument('--token', '-t', default=config.figma_token,
                        help='Figma Personal Access Token (defaults to FIGMA_API_TOKEN)')
    parser.add_argument('--output', '-o', default=config.output_file, help='Output markdown file')
    parser.add_argument('--node-ids', '-n', default='',
                        help='Comma-separated node IDs to extract instead of the entire file')
    parser.add_argument('--inherit-context', '-i', action='store_true',
                        help='Inherit file-level context (colors, styles) when extracting specific nodes')
    parser.add_argument('--export-images', action='store_true', help='Export images/assets from Figma')
    parser.add_argument('--image-format', default=config.image_format, help='Image format: png, svg, jpg, pdf')
    parser.add_argument('--image-scales', default=config.image_scales,
                        help='Comma-separated scale factors (e.g. "1,2,3")')
    parser.add_argument('--image-dir', default=config.image_dir, help='Output directory for exported images')
    parser.add_argument('--component-tree', action='store_true',
                        help='Include the hierarchical component tree in the output')
    parser.add_argument('--log-level', default=config.log_level, help='Logging level (DEBUG, INFO, WARNING, ERROR)')
    parser.add_argument('--log-file', help='Also write logs to this file')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def print_summary(result, output_path: Path):
    specs = result.specs
    colors = specs.colors
    color_count = (len(colors.primary) + len(colors.secondary) + len(colors.background)
                   + len(colors.text) + len(colors.status) + len(colors.border))

    print("\n" + "=" * 60)
    print("🎉 EXTRACTION COMPLETED SUCCESSFULLY!")
    print("=" * 60)
    print(f"📄 File: {result.file_name}")
    print(f"🎨 Colors: {color_count}")
    print(f"🔤 Font sizes: {len(specs.typography.font_sizes)}")
    print(f"📏 Spacing values: {len(specs.spacing)}")
    print(f"🌑 Shadows: {len(specs.shadows)}")
    print(f"⭕ Border radii: {len(specs.radii)}")

    export_result = result.export_result
    if export_result is not None:
        screenshot = export_result.screenshot
        if screenshot:
            print(f"📸 Screenshot: {screenshot.file_name}")
        print(f"🖼️ Assets exported: {len(export_result.assets)}")
        if export_result.errors:
            print(f"⚠️ Asset errors: {len(export_result.errors)}")
        if export_result.unresolved:
            print(f"⚠️ Unresolved embedded images: {len(export_result.unresolved)}")

    if result.api_stats:
        print(f"📡 API calls: {result.api_stats.get('api_calls', 0)} (retries: {result.api_stats.get('retries', 0)})")

    print(f"💾 Output: {output_path}")
    print("=" * 60)


def main(argv=None):
    """Parse arguments, run the extraction and write the markdown report"""

    # Load environment variables
    env_loaded = False
    if os.path.exists('.env'):
        load_dotenv('.env')
        env_loaded = True

    config = Config()
    args = build_parser(config).parse_args(argv)

    setup_logging(args.log_level, args.log_file)
    logger = logging.getLogger(__name__)

    if env_loaded:
        logger.info("Environment variables loaded successfully")

    print("\n🎨 Figma Design Extractor")
    print("=" * 26)

    config.figma_token = args.token
    if not config.validate():
        return 1

    try:
        options = Options(
            access_token=args.token,
            file_url=args.url,
            node_ids=parse_node_ids(args.node_ids),
            inherit_file_context=args.inherit_context,
            export_images=args.export_images,
            image_format=args.image_format,
            image_scales=parse_scales(args.image_scales),
            image_dir=args.image_dir,
            component_tree=args.component_tree,
            max_retries=config.max_retries,
            request_timeout=config.request_timeout
        )

        result = run(options)

        output_path = Path(args.output)
        if output_path.parent != Path('.'):
            output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(result.markdown, encoding='utf-8')
        logger.info(f"💾 Specifications written to {output_path}")

        print_summary(result, output_path)
        return 0

    except (ValueError, FigmaAPIError, ExportError) as e:
        logger.error(f"❌ {e}")
        return 1
    except OSError as e:
        logger.error(f"❌ Failed to write output: {e}")
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
