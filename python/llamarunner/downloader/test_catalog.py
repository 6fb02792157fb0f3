import unittest

import httpx

from llamarunner.downloader.catalog import CandidateCatalog
from llamarunner.downloader.entity import ArtifactId, DownloaderConfig
from llamarunner.downloader.errors import NotFoundError


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)


def _listing(*names):
    return {"id": "x", "siblings": [{"rfilename": n} for n in names]}


class TestCandidateCatalog(unittest.TestCase):

    def setUp(self):
        self.config = DownloaderConfig(endpoint="https://hub.test")
        self.requests = []

    def _catalog(self, status=200, body=None, content=None):
        def handler(request):
            self.requests.append(request)
            if content is not None:
                return httpx.Response(status, content=content)
            return httpx.Response(status, json=body)
        return CandidateCatalog(self.config, client=_client(handler))

    def test_filters_model_files(self):
        catalog = self._catalog(body=_listing(
            "README.md", "config.json", "tiny-model-q4_0.gguf", "tiny-model-F16.GGUF", "weights.bin"))
        files = catalog.resolve(ArtifactId.parse("acme/tiny-model"))
        self.assertEqual(files, ["tiny-model-q4_0.gguf", "tiny-model-F16.GGUF", "weights.bin"])
        self.assertEqual(str(self.requests[0].url), "https://hub.test/api/models/acme/tiny-model")

    def test_not_found_carries_model_url(self):
        catalog = self._catalog(status=404, body={"error": "Repository not found"})
        with self.assertRaises(NotFoundError) as ctx:
            catalog.resolve(ArtifactId.parse("nope/does-not-exist"))
        self.assertEqual(ctx.exception.url, "https://hub.test/nope/does-not-exist")
        self.assertIn("https://hub.test/nope/does-not-exist", str(ctx.exception))

    def test_malformed_body(self):
        catalog = self._catalog(content=b"<html>oops</html>")
        with self.assertRaises(NotFoundError):
            catalog.resolve(ArtifactId.parse("acme/tiny-model"))

    def test_siblings_not_a_list(self):
        catalog = self._catalog(body={"siblings": "nope"})
        with self.assertRaises(NotFoundError):
            catalog.resolve(ArtifactId.parse("acme/tiny-model"))

    def test_transport_error_is_not_found(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)
        catalog = CandidateCatalog(self.config, client=_client(handler))
        with self.assertRaises(NotFoundError) as ctx:
            catalog.resolve(ArtifactId.parse("acme/tiny-model"))
        self.assertEqual(ctx.exception.url, "https://hub.test/acme/tiny-model")

    def test_no_model_files_uses_first_guess_only(self):
        catalog = self._catalog(body=_listing("README.md", "model.safetensors"))
        files = catalog.resolve(ArtifactId.parse("acme/tiny-model"))
        self.assertEqual(files, ["tiny-model.gguf"])

    def test_empty_listing_uses_first_guess(self):
        catalog = self._catalog(body={"siblings": []})
        self.assertEqual(catalog.resolve(ArtifactId.parse("acme/Phi.v2")), ["Phi.v2.gguf"])


if __name__ == "__main__":
    unittest.main()
