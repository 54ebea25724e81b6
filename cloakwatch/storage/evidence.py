"""Screenshot/HTML sample storage for classified pages."""

import asyncio
import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import urlparse


class EvidenceStore:
    """Keeps one sample directory per classified URL, split by raw verdict."""

    def __init__(self, samples_dir: Path):
        self.samples_dir = Path(samples_dir)
        self.samples_dir.mkdir(parents=True, exist_ok=True)

    def get_sample_dir(self, url: str, is_scam: bool) -> Path:
        """Get or create the sample directory for a URL."""
        # Hash suffix keeps distinct URLs on the same host apart
        url_hash = hashlib.sha256(url.encode("utf-8")).hexdigest()[:12]
        host = (urlparse(url).hostname or "unknown").lower()
        safe_host = "".join(c if c.isalnum() or c in ".-" else "_" for c in host)
        label = "scam" if is_scam else "benign"

        sample_dir = self.samples_dir / label / f"{safe_host}_{url_hash}"
        sample_dir.mkdir(parents=True, exist_ok=True)
        return sample_dir

    async def save_sample(
        self,
        url: str,
        screenshot: bytes,
        html: str,
        is_scam: bool,
        confidence: float,
    ) -> Path:
        """Save screenshot, HTML and verdict for a classified page."""
        sample_dir = self.get_sample_dir(url, is_scam)
        await asyncio.to_thread((sample_dir / "screenshot.png").write_bytes, screenshot)
        await asyncio.to_thread((sample_dir / "page.html").write_text, html or "", encoding="utf-8")

        meta = {
            "url": url,
            "is_scam": is_scam,
            "confidence": confidence,
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }
        await asyncio.to_thread(
            (sample_dir / "verdict.json").write_text, json.dumps(meta, indent=2), encoding="utf-8"
        )
        return sample_dir

    def count_samples(self) -> dict[str, int]:
        counts = {}
        for label in ("scam", "benign"):
            label_dir = self.samples_dir / label
            counts[label] = sum(1 for p in label_dir.iterdir() if p.is_dir()) if label_dir.exists() else 0
        return counts
