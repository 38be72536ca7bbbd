import os
import shutil
import tempfile
import unittest
from datetime import datetime

from PIL import Image
from PIL.TiffImagePlugin import IFDRational

from photostream.utils.exif import (
    ExifRecord,
    ExposureSettings,
    extract_exif_data,
    format_shutter,
    gps_from_ifd,
    parse_exif_tags,
)


class TestParseExifTags(unittest.TestCase):
    """Test cases for turning raw tag mappings into ExifRecords."""

    def test_full_record(self):
        """Test a record with camera, lens, settings, date and caption."""
        record = parse_exif_tags({
            "Make": "Canon",
            "Model": "EOS R5",
            "LensModel": "RF85mm F1.2 L USM",
            "FNumber": IFDRational(28, 10),
            "ExposureTime": IFDRational(1, 250),
            "ISOSpeedRatings": 100,
            "FocalLength": IFDRational(85, 1),
            "DateTimeOriginal": "2023:05:01 10:30:00",
            "ImageDescription": "  Evening light  ",
        })

        self.assertEqual(record.camera, "Canon EOS R5")
        self.assertEqual(record.lens, "RF85mm F1.2 L USM")
        self.assertEqual(record.settings.aperture, "f/2.8")
        self.assertEqual(record.settings.shutter, "1/250s")
        self.assertEqual(record.settings.iso, "100")
        self.assertEqual(record.settings.focal_length, "85mm")
        self.assertEqual(record.captured_at, datetime(2023, 5, 1, 10, 30, 0))
        self.assertEqual(record.caption, "Evening light")

    def test_camera_requires_make_and_model(self):
        """Test that camera is only set when both Make and Model exist."""
        self.assertIsNone(parse_exif_tags({"Make": "Canon"}).camera)
        self.assertIsNone(parse_exif_tags({"Model": "EOS R5"}).camera)

    def test_prefers_35mm_focal_length(self):
        """Test that the 35mm equivalent focal length wins."""
        record = parse_exif_tags({"FocalLength": 4.2, "FocalLengthIn35mmFilm": 26})
        self.assertEqual(record.settings.focal_length, "26mm")

        record = parse_exif_tags({"FocalLength": 4.2})
        self.assertEqual(record.settings.focal_length, "4.2mm")

    def test_datetime_fallback(self):
        """Test that DateTime is used when DateTimeOriginal is missing."""
        record = parse_exif_tags({"DateTime": "2021:12:24 08:00:00"})
        self.assertEqual(record.captured_at, datetime(2021, 12, 24, 8, 0, 0))

    def test_invalid_timestamp_is_ignored(self):
        """Test that an unparseable timestamp leaves captured_at empty."""
        record = parse_exif_tags({"DateTimeOriginal": "0000:00:00 00:00:00"})
        self.assertIsNone(record.captured_at)

    def test_user_comment_with_charset_prefix(self):
        """Test decoding of a UserComment with an ASCII prefix."""
        record = parse_exif_tags({"UserComment": b"ASCII\x00\x00\x00Harbour at dusk"})
        self.assertEqual(record.caption, "Harbour at dusk")

    def test_xp_comment_utf16(self):
        """Test decoding of a UTF-16LE XPComment."""
        record = parse_exif_tags({"XPComment": "Old town".encode("utf-16-le")})
        self.assertEqual(record.caption, "Old town")

    def test_caption_order(self):
        """Test that ImageDescription is preferred over comments."""
        record = parse_exif_tags({
            "ImageDescription": "",
            "UserComment": "From the comment",
            "XPSubject": "From the subject".encode("utf-16-le"),
        })
        self.assertEqual(record.caption, "From the comment")

    def test_empty_tags(self):
        """Test that no tags yields an empty record."""
        record = parse_exif_tags({})
        self.assertEqual(record, ExifRecord())
        self.assertIsNone(record.settings)

    def test_settings_to_dict(self):
        """Test the record key names and omission of missing values."""
        settings = ExposureSettings(aperture="f/4", iso="200", focal_length="35mm")
        self.assertEqual(
            settings.to_dict(),
            {"aperture": "f/4", "iso": "200", "focalLength": "35mm"}
        )


class TestFormatShutter(unittest.TestCase):
    """Test cases for shutter speed formatting."""

    def test_fractions(self):
        self.assertEqual(format_shutter(1 / 250), "1/250s")
        self.assertEqual(format_shutter(0.5), "1/2s")
        self.assertEqual(format_shutter(1 / 3), "1/3s")

    def test_long_exposures(self):
        self.assertEqual(format_shutter(1), "1s")
        self.assertEqual(format_shutter(2), "2s")
        self.assertEqual(format_shutter(2.5), "2.5s")


class TestGPSFromIFD(unittest.TestCase):
    """Test cases for GPS conversion."""

    def test_named_tags(self):
        """Test conversion of degrees/minutes/seconds with named tags."""
        coordinate = gps_from_ifd({
            "GPSLatitude": (48.0, 51.0, 0.0),
            "GPSLatitudeRef": "N",
            "GPSLongitude": (2.0, 17.0, 24.0),
            "GPSLongitudeRef": "E",
        })
        self.assertAlmostEqual(coordinate.latitude, 48.85, places=6)
        self.assertAlmostEqual(coordinate.longitude, 2.29, places=6)

    def test_numeric_tag_ids_and_southern_hemisphere(self):
        """Test tag ids and negative coordinates for S and W."""
        coordinate = gps_from_ifd({
            1: "S",
            2: (IFDRational(33, 1), IFDRational(52, 1), IFDRational(0, 1)),
            3: "W",
            4: (IFDRational(70, 1), IFDRational(30, 1), IFDRational(0, 1)),
        })
        self.assertAlmostEqual(coordinate.latitude, -(33 + 52 / 60), places=6)
        self.assertAlmostEqual(coordinate.longitude, -70.5, places=6)

    def test_missing_reference(self):
        """Test that an incomplete GPS IFD yields None."""
        self.assertIsNone(gps_from_ifd({
            "GPSLatitude": (48.0, 51.0, 0.0),
            "GPSLongitude": (2.0, 17.0, 24.0),
            "GPSLongitudeRef": "E",
        }))

    def test_out_of_range(self):
        """Test that impossible coordinates are rejected."""
        self.assertIsNone(gps_from_ifd({
            "GPSLatitude": (95.0, 0.0, 0.0),
            "GPSLatitudeRef": "N",
            "GPSLongitude": (2.0, 0.0, 0.0),
            "GPSLongitudeRef": "E",
        }))


class TestExtractExifData(unittest.TestCase):
    """Test cases for reading metadata from image files."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_reads_base_ifd(self):
        """Test reading camera and timestamp from a saved JPEG."""
        path = os.path.join(self.temp_dir, "camera.jpg")
        exif = Image.Exif()
        exif[0x010F] = "FUJIFILM"
        exif[0x0110] = "X-T4"
        exif[0x0132] = "2022:08:14 17:45:10"
        Image.new("RGB", (32, 24), color="blue").save(path, exif=exif)

        record = extract_exif_data(path)

        self.assertEqual(record.camera, "FUJIFILM X-T4")
        self.assertEqual(record.captured_at, datetime(2022, 8, 14, 17, 45, 10))
        self.assertIsNone(record.gps)

    def test_image_without_exif(self):
        """Test that an image without metadata gives an empty record."""
        path = os.path.join(self.temp_dir, "plain.png")
        Image.new("RGB", (16, 16)).save(path)

        self.assertEqual(extract_exif_data(path), ExifRecord())

    def test_corrupt_file(self):
        """Test that unreadable files warn and return an empty record."""
        path = os.path.join(self.temp_dir, "broken.jpg")
        with open(path, "wb") as f:
            f.write(b"this is not an image")

        with self.assertLogs("photostream.utils.exif", level="WARNING"):
            record = extract_exif_data(path)

        self.assertEqual(record, ExifRecord())

    def test_missing_file(self):
        """Test that a missing file warns and returns an empty record."""
        with self.assertLogs("photostream.utils.exif", level="WARNING"):
            record = extract_exif_data(os.path.join(self.temp_dir, "nope.jpg"))

        self.assertEqual(record, ExifRecord())


if __name__ == "__main__":
    unittest.main()
