import asyncio
import logging
import sys
from pathlib import Path

import click
from docs_mirror import DocsMirror, MirrorConfig

logger = logging.getLogger(__name__)

DEFAULTS = MirrorConfig()


@click.command()
@click.option("--sitemap-url", default=DEFAULTS.sitemap_url, show_default=True, help="Sitemap to read URLs from")
@click.option("--nav-url", default=DEFAULTS.nav_page_url, show_default=True, help="Page whose sidebar defines categories")
@click.option("--prefix", "-p", default=DEFAULTS.url_prefix, show_default=True, help="Only mirror sitemap URLs starting with this prefix")
@click.option("--base-url", default=DEFAULTS.base_url, show_default=True, help="Site origin that sidebar links are resolved against")
@click.option(
    "--output-root",
    "-o",
    default=".",
    show_default=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding the docs tree and README",
)
@click.option("--docs-dir", default=DEFAULTS.docs_dir, show_default=True, help="Docs directory name under the output root")
@click.option("--readme", "readme_name", default=DEFAULTS.readme_name, show_default=True, help="Index file name")
@click.option("--concurrency", "-c", default=DEFAULTS.concurrency, show_default=True, type=click.IntRange(min=1), help="Maximum parallel downloads")
@click.option("--timeout", "-t", default=DEFAULTS.timeout, show_default=True, type=float, help="Per-request timeout in seconds")
@click.option("--html", "convert_html", is_flag=True, help="Convert rendered HTML instead of requesting <page>.md")
@click.option("--verbose", "-v", is_flag=True, help="Log every request")
def cli(
    sitemap_url,
    nav_url,
    prefix,
    base_url,
    output_root,
    docs_dir,
    readme_name,
    concurrency,
    timeout,
    convert_html,
    verbose,
):
    """Mirror a documentation site into categorized markdown files plus a README index."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
    )
    config = MirrorConfig(
        sitemap_url=sitemap_url,
        nav_page_url=nav_url,
        url_prefix=prefix,
        base_url=base_url,
        output_root=output_root,
        docs_dir=docs_dir,
        readme_name=readme_name,
        concurrency=concurrency,
        timeout=timeout,
        convert_html=convert_html,
    )

    try:
        status = asyncio.run(DocsMirror(config).run())
    except Exception as e:
        logger.error(f"\n❌ A fatal error occurred during the process: {e!r}")
        sys.exit(1)

    summary = status.to_dict()
    click.echo(
        f"Mirrored {len(summary['files_written'])}/{summary['total_urls']} documents "
        f"in {summary['elapsed_time']}s"
    )
    if summary["failed_urls"]:
        click.echo("Failed URLs:")
        for url in summary["failed_urls"]:
            click.echo(f"  - {url}")


if __name__ == "__main__":
    cli()
