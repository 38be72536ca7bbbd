import os
import shutil
import tempfile
import unittest
from datetime import date, datetime
from pathlib import Path

from photostream.processing.exceptions import RecordFormatError
from photostream.processing.records import (
    EMPTY_BODY_PLACEHOLDER,
    STORY_PLACEHOLDER,
    ImageAsset,
    MetadataRecord,
    cover_image_src,
    dedupe_tags,
    parse_markdown,
    publish_date,
    read_record,
    record_id,
    render_markdown,
    write_record,
)


class TestRecordIdentity(unittest.TestCase):
    """Test cases for record ids and publish dates."""

    def test_record_id(self):
        self.assertEqual(
            record_id(date(2023, 5, 1), "/photos/trip/IMG_0001.JPG"),
            "2023-05-01_IMG_0001"
        )

    def test_publish_date_prefers_capture(self):
        self.assertEqual(
            publish_date(datetime(2022, 1, 2, 3, 4), datetime(2023, 5, 1)),
            date(2022, 1, 2)
        )

    def test_publish_date_uses_mtime(self):
        self.assertEqual(publish_date(None, datetime(2023, 5, 1, 12, 0)), date(2023, 5, 1))

    def test_publish_date_uses_now(self):
        self.assertEqual(
            publish_date(None, None, now=datetime(2024, 2, 29, 8, 0)),
            date(2024, 2, 29)
        )

    def test_dedupe_tags(self):
        self.assertEqual(
            dedupe_tags(["Paris", "paris", " river ", "PARIS", "", "River"]),
            ["Paris", "river"]
        )

    def test_cover_image_src(self):
        self.assertEqual(
            cover_image_src("/site/src/assets/photos/trip/IMG_1.jpg", "/site/src/content/photos"),
            "../../assets/photos/trip/IMG_1.jpg"
        )


class TestMarkdown(unittest.TestCase):
    """Test cases for rendering and parsing records."""

    def make_record(self, **kwargs):
        values = dict(
            id="2023-05-01_IMG_0001",
            title="Golden Hour",
            description="Warm light over the river.",
            alt_text="River at sunset",
            published=date(2023, 5, 1),
            cover_src="../../assets/photos/IMG_0001.jpg",
            tags=["sunset", "Sunset", "river"],
        )
        values.update(kwargs)
        return MetadataRecord(**values)

    def test_frontmatter_order_and_content(self):
        record = self.make_record(
            camera="Canon EOS R5",
            settings={"aperture": "f/2.8", "shutter": "1/250s", "iso": "100", "focalLength": "85mm"},
            location={"latitude": 48.85, "longitude": 2.29, "name": "Paris, France"},
        )

        data = record.to_frontmatter()

        self.assertEqual(
            list(data),
            ["title", "publishDate", "coverImage", "tags", "draft",
             "description", "camera", "settings", "location"]
        )
        self.assertEqual(data["coverImage"], {
            "alt": "River at sunset",
            "src": "../../assets/photos/IMG_0001.jpg",
        })
        self.assertEqual(data["tags"], ["sunset", "river"])
        self.assertFalse(data["draft"])
        self.assertNotIn("lens", data)

    def test_body(self):
        body = self.make_record().body()
        self.assertEqual(body, f"Warm light over the river.\n\n{STORY_PLACEHOLDER}\n")

    def test_body_without_description(self):
        body = self.make_record(description="").body()
        self.assertEqual(body, f"{EMPTY_BODY_PLACEHOLDER}\n")
        self.assertNotIn(STORY_PLACEHOLDER, body)

    def test_render_and_parse(self):
        record = self.make_record()
        text = render_markdown(record.to_frontmatter(), record.body())

        self.assertTrue(text.startswith("---\ntitle: Golden Hour\npublishDate: 2023-05-01\n"))

        frontmatter, body = parse_markdown(text)
        self.assertEqual(frontmatter["publishDate"], date(2023, 5, 1))
        self.assertEqual(frontmatter["coverImage"]["alt"], "River at sunset")
        self.assertEqual(body, record.body())

    def test_parse_without_frontmatter(self):
        with self.assertRaises(RecordFormatError):
            parse_markdown("# Just a heading\n")

    def test_parse_non_mapping(self):
        with self.assertRaises(RecordFormatError):
            parse_markdown("---\n- a\n- b\n---\nbody\n")

    def test_parse_empty_frontmatter(self):
        self.assertEqual(parse_markdown("---\n---\nbody\n"), ({}, "body\n"))


class TestPersistence(unittest.TestCase):
    """Test cases for reading and writing record files."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_write_is_atomic_and_clean(self):
        path = Path(self.temp_dir) / "2023-05-01_IMG_0001.md"

        write_record(path, {"title": "First"}, "body\n")
        write_record(path, {"title": "Second", "custom": [1, 2]}, "new body\n")

        self.assertEqual(os.listdir(self.temp_dir), ["2023-05-01_IMG_0001.md"])
        frontmatter, body = read_record(path)
        self.assertEqual(frontmatter, {"title": "Second", "custom": [1, 2]})
        self.assertEqual(body, "new body\n")

    def test_read_invalid_record(self):
        path = Path(self.temp_dir) / "bad.md"
        path.write_text("no front matter", encoding="utf-8")

        with self.assertRaises(RecordFormatError):
            read_record(path)

    def test_read_undecodable_record(self):
        path = Path(self.temp_dir) / "latin1.md"
        path.write_bytes(b"---\ntitle: caf\xe9\n---\nbody\n")

        with self.assertRaises(RecordFormatError) as ctx:
            read_record(path)
        self.assertIn("latin1.md", str(ctx.exception))

    def test_image_asset_from_path(self):
        path = Path(self.temp_dir) / "IMG_0001.jpg"
        path.write_bytes(b"1234")
        os.utime(path, (1682942400, 1682942400))

        asset = ImageAsset.from_path(path)

        self.assertEqual(asset.size, 4)
        self.assertEqual(asset.modified, datetime.fromtimestamp(1682942400))
        self.assertEqual(asset.name, "IMG_0001.jpg")


if __name__ == "__main__":
    unittest.main()
