import unittest

from llamarunner.downloader.entity import ArtifactId, ArtifactType
from llamarunner.downloader.selection import check_compatibility, select_best_file


class TestSelectBestFile(unittest.TestCase):

    def test_q4_wins_regardless_of_position(self):
        files = ["model-f16.gguf", "model-q8_0.gguf", "model-Q4_K_M.gguf"]
        self.assertEqual(select_best_file(files), "model-Q4_K_M.gguf")

    def test_first_q4_by_order(self):
        files = ["a-q4_k_m.gguf", "a-q4_0.gguf"]
        self.assertEqual(select_best_file(files), "a-q4_k_m.gguf")
        self.assertEqual(select_best_file(list(reversed(files))), "a-q4_0.gguf")

    def test_q8_or_f16_when_no_q4(self):
        files = ["readme.bin", "model-F16.gguf", "model-q8_0.gguf"]
        self.assertEqual(select_best_file(files), "model-F16.gguf")

    def test_q5_is_not_preferred(self):
        files = ["model-q5_k_m.gguf", "model-q8_0.gguf"]
        self.assertEqual(select_best_file(files), "model-q8_0.gguf")

    def test_falls_back_to_first(self):
        files = ["model-q6_k.gguf", "model-q5_0.gguf"]
        self.assertEqual(select_best_file(files), "model-q6_k.gguf")

    def test_single_candidate(self):
        self.assertEqual(select_best_file(["pytorch_model.bin"]), "pytorch_model.bin")

    def test_empty_rejected(self):
        with self.assertRaises(ValueError):
            select_best_file([])


class TestCompatibility(unittest.TestCase):

    def test_embedding_model_as_embedding(self):
        mid = ArtifactId.parse("CompendiumLabs/bge-small-en-v1.5-gguf")
        self.assertIsNone(check_compatibility(mid, ArtifactType.EMBEDDING))

    def test_embedding_model_as_completion_warns(self):
        mid = ArtifactId.parse("nomic-ai/nomic-embed-text-v1.5-GGUF")
        warning = check_compatibility(mid, ArtifactType.COMPLETION)
        self.assertIn("embedding", warning)

    def test_reranker_checked_before_embedding_marker(self):
        mid = ArtifactId.parse("gpustack/bge-reranker-v2-m3-GGUF")
        warning = check_compatibility(mid, "embedding")
        self.assertIn("reranking model", warning)
        self.assertIsNone(check_compatibility(mid, ArtifactType.RERANKING))

    def test_plain_model_as_reranker_warns(self):
        mid = ArtifactId.parse("TheBloke/phi-2-GGUF")
        self.assertIsNone(check_compatibility(mid, ArtifactType.COMPLETION))
        self.assertIn("no reranking marker", check_compatibility(mid, ArtifactType.RERANKING))


if __name__ == "__main__":
    unittest.main()
