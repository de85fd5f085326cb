"""
CLI entrypoint for the NVD feed download. Run from cron, e.g.:

  python -m vulnradar.download_feed

Or daily: 0 3 * * * cd /path/to/vulnradar && .venv/bin/python -m vulnradar.download_feed
"""

import logging
import sys

from vulnradar.core.config import get_settings
from vulnradar.core.database import SessionLocal
from vulnradar.services.audit import record_audit
from vulnradar.services.feed_download import download_all_vendors
from vulnradar.services.nvd_feed import NvdFeedClient

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Download every vendor's recent vulnerabilities. Exit 1 only when every vendor failed."""
    settings = get_settings()
    db = SessionLocal()
    try:
        with NvdFeedClient(settings) as client:
            report = download_all_vendors(db, client, settings.NVD_REQUEST_DELAY_SEC)
        record_audit(db, None, "feed_downloaded", details=report.message)
        for result in report.vendor_results:
            if result.status == "failed":
                logger.warning("Vendor %s failed: %s", result.vendor, result.error)
        logger.info("Feed download completed: %s", report.message)
        failed = [r for r in report.vendor_results if r.status == "failed"]
        if report.vendor_results and len(failed) == len(report.vendor_results):
            return 1
        return 0
    except Exception as e:
        logger.exception("Feed download failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
