"""Sitemap XML generation for event pages."""
from datetime import date
from typing import Iterable, Optional
from xml.sax.saxutils import escape

CHANGEFREQ = 'monthly'
PRIORITY = '0.8'


def clean_path(path: str) -> str:
    """Drop a trailing ``.html`` and slash so URLs match the hosting layer."""
    if path.endswith('.html'):
        path = path[:-len('.html')]
    return path.rstrip('/')


def generate_sitemap_xml(
    paths: Iterable[str],
    base_url: str,
    run_date: Optional[date] = None
) -> str:
    """
    Generate sitemap.xml content.

    Args:
        paths: Manifest paths (``<bucket>/<slug>``)
        base_url: Public URL the paths are relative to
        run_date: Date stamped as ``lastmod`` on every entry

    Returns:
        Sitemap XML document
    """
    base = base_url.rstrip('/')
    lastmod = (run_date or date.today()).strftime('%Y-%m-%d')

    xml_lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    for path in paths:
        xml_lines.append("  <url>")
        xml_lines.append(f"    <loc>{escape(base + '/' + clean_path(path))}</loc>")
        xml_lines.append(f"    <lastmod>{lastmod}</lastmod>")
        xml_lines.append(f"    <changefreq>{CHANGEFREQ}</changefreq>")
        xml_lines.append(f"    <priority>{PRIORITY}</priority>")
        xml_lines.append("  </url>")
    xml_lines.append("</urlset>")
    return "\n".join(xml_lines) + "\n"
