import os
import tempfile
import unittest
from pathlib import Path

import httpx

from llamarunner.downloader.entity import ArtifactType, DownloaderConfig
from llamarunner.downloader.errors import (
    DownloadError,
    InsufficientSpaceError,
    InvalidIdError,
    NotFoundError,
)
from llamarunner.downloader.huggingface import HuggingFaceDownloader

MIB = 1024 * 1024


class FakeHub:
    """In-memory hub serving the model API and resolve endpoints."""

    def __init__(self):
        self.repos = {}
        self.requests = []
        self.fail_downloads = False

    def handler(self, request):
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/api/models/"):
            repo = path[len("/api/models/"):]
            if repo not in self.repos:
                return httpx.Response(404, json={"error": "Repository not found"})
            return httpx.Response(200, json={
                "id": repo,
                "siblings": [{"rfilename": name} for name in self.repos[repo]],
            })
        if "/resolve/main/" in path:
            if self.fail_downloads:
                return httpx.Response(502)
            repo, filename = path.lstrip("/").split("/resolve/main/", 1)
            return httpx.Response(200, content=self.repos[repo][filename])
        return httpx.Response(404)


class TestHuggingFaceDownloader(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.config = DownloaderConfig(
            store_root=self.tmp / "models",
            temp_dir=self.tmp / "tmp",
            endpoint="https://hub.test",
            min_free_bytes=0,
        )
        self.hub = FakeHub()
        self.sleeps = []
        client = httpx.Client(transport=httpx.MockTransport(self.hub.handler), follow_redirects=True)
        self.downloader = HuggingFaceDownloader(self.config, client=client, sleep=self.sleeps.append)

    def tearDown(self):
        self._tmp.cleanup()

    def test_end_to_end_then_idempotent(self):
        payload = os.urandom(2 * MIB)
        self.hub.repos["acme/tiny-model"] = {
            "README.md": b"# tiny",
            "tiny-model-q4_0.gguf": payload,
            "tiny-model-f16.gguf": b"f16" * 10,
        }

        path = self.downloader.download_artifact("acme/tiny-model", ArtifactType.COMPLETION)

        self.assertEqual(path, self.tmp / "models" / "acme_tiny-model.gguf")
        self.assertEqual(path.read_bytes(), payload)
        urls = [str(r.url) for r in self.hub.requests]
        self.assertEqual(urls, [
            "https://hub.test/api/models/acme/tiny-model",
            "https://hub.test/acme/tiny-model/resolve/main/tiny-model-q4_0.gguf",
        ])
        self.assertEqual(list((self.tmp / "tmp").iterdir()), [])

        again = self.downloader.download_artifact("acme/tiny-model", "completion")
        self.assertEqual(again, path)
        self.assertEqual(len(self.hub.requests), 2)

    def test_existing_file_skips_catalog(self):
        existing = self.tmp / "models" / "acme_tiny-model.gguf"
        existing.parent.mkdir(parents=True)
        existing.write_bytes(b"already here")
        self.assertEqual(self.downloader.download_artifact("acme/tiny-model"), existing)
        self.assertEqual(self.hub.requests, [])

    def test_unknown_model(self):
        with self.assertRaises(NotFoundError) as ctx:
            self.downloader.download_artifact("nope/does-not-exist")
        self.assertIn("https://hub.test/nope/does-not-exist", str(ctx.exception))
        self.assertFalse((self.tmp / "models" / "nope_does-not-exist.gguf").exists())

    def test_invalid_id_makes_no_request(self):
        with self.assertRaises(InvalidIdError):
            self.downloader.download_artifact("not a model id")
        self.assertEqual(self.hub.requests, [])

    def test_failed_download_leaves_nothing_behind(self):
        self.hub.repos["acme/tiny-model"] = {"tiny-model-q4_0.gguf": os.urandom(2 * MIB)}
        self.hub.fail_downloads = True
        with self.assertRaises(DownloadError):
            self.downloader.download_artifact("acme/tiny-model")
        self.assertEqual(list((self.tmp / "tmp").iterdir()), [])
        self.assertFalse((self.tmp / "models" / "acme_tiny-model.gguf").exists())
        self.assertEqual(self.sleeps.count(10.0), 2)

    def test_disk_space_precheck(self):
        self.config.min_free_bytes = 1 << 60
        self.hub.repos["acme/tiny-model"] = {"tiny-model-q4_0.gguf": os.urandom(2 * MIB)}
        with self.assertRaises(InsufficientSpaceError):
            self.downloader.download_artifact("acme/tiny-model")
        self.assertEqual(self.hub.requests, [])


if __name__ == "__main__":
    unittest.main()
