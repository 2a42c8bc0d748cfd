import unittest

from charwiki.filenames import contains_cjk, sanitize_filename


class SanitizeFilenameTests(unittest.TestCase):
    def test_percent_encoded_name_is_decoded(self):
        self.assertEqual(
            sanitize_filename("%E8%8F%B2%E5%A8%85.png"), "菲娅.png"
        )
        self.assertEqual(sanitize_filename("a%20b.png"), "a b.png")

    def test_latin1_mojibake_is_repaired(self):
        mangled = "立绘.png".encode("utf-8").decode("latin-1")
        self.assertNotEqual(mangled, "立绘.png")
        self.assertEqual(sanitize_filename(mangled), "立绘.png")

    def test_surrogate_escaped_bytes_are_repaired(self):
        raw = "立绘.png".encode("utf-8").decode("ascii", "surrogateescape")
        self.assertEqual(sanitize_filename(raw), "立绘.png")

    def test_plain_ascii_passes_through(self):
        self.assertEqual(sanitize_filename("profile_0_portrait.png"), "profile_0_portrait.png")

    def test_already_decoded_cjk_passes_through(self):
        self.assertEqual(sanitize_filename("立绘.png"), "立绘.png")

    def test_latin1_text_without_cjk_is_left_alone(self):
        self.assertEqual(sanitize_filename("café.png"), "café.png")

    def test_invalid_percent_bytes_fall_back_to_original(self):
        self.assertEqual(sanitize_filename("bad%FFname.png"), "bad%FFname.png")

    def test_contains_cjk(self):
        self.assertTrue(contains_cjk("角色"))
        self.assertFalse(contains_cjk("character"))


if __name__ == "__main__":
    unittest.main()
