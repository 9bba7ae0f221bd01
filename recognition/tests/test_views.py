# recognition/tests/test_views.py
import base64
import json
import shutil
import tempfile
from pathlib import Path
from unittest import mock

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.urls import reverse

from recognition.profiles import MOCK_PROFILES
from recognition.services.matcher import LabeledEmbeddings
from recognition.services.profile_index import ProfileIndex

from .helpers import FakeAnalyzer, checkerboard, make_face, png_bytes, unit


def _index(entries):
    index = ProfileIndex(MOCK_PROFILES)
    index.set_entries(entries)
    return index


class ViewsTestBase(TestCase):
    def setUp(self):
        self.media = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, self.media, ignore_errors=True)
        override = override_settings(MEDIA_ROOT=str(self.media), MLFLOW_TRACKING_URI="", SAVE_ANNOTATED_CAPTURES=False)
        override.enable()
        self.addCleanup(override.disable)

    def upload(self, content=None, content_type="image/png"):
        self.client.get(reverse("upload"))
        content = png_bytes(checkerboard()) if content is None else content
        return self.client.post(
            reverse("upload"),
            data={"image": SimpleUploadedFile("eye.png", content, content_type=content_type)},
        )

    def analyze(self, faces, entries):
        with mock.patch("recognition.views.ensure_models", return_value=FakeAnalyzer(faces)), \
             mock.patch("recognition.views.get_profile_index", return_value=_index(entries)):
            return self.client.post(reverse("analyze"))


class ScanFlowTest(ViewsTestBase):
    def test_full_flow_with_match(self):
        r1 = self.upload()
        self.assertRedirects(r1, reverse("processing"), fetch_redirect_response=False)

        r2 = self.client.get(reverse("processing"))
        self.assertContains(r2, "Analyzing Eye Features")

        emb = unit(8, 0)
        r3 = self.analyze([make_face(embedding=emb.copy())], [LabeledEmbeddings("001", [emb])])
        self.assertRedirects(r3, reverse("results"), fetch_redirect_response=False)

        r4 = self.client.get(reverse("results"))
        self.assertContains(r4, "Identity Match Found!")
        self.assertContains(r4, "Sarah Johnson")
        self.assertContains(r4, "#000001")
        self.assertContains(r4, "100%")

        r5 = self.client.get(reverse("results_download"))
        self.assertEqual(r5.status_code, 200)
        self.assertIn("attachment; filename=\"eye-scan-result-", r5["Content-Disposition"])
        payload = json.loads(r5.content)
        self.assertEqual(payload["name"], "Sarah Johnson")
        self.assertEqual(payload["confidence"], 100)

        r6 = self.client.get(reverse("capture_image"))
        self.assertEqual(r6.status_code, 200)
        self.assertEqual(b"".join(r6.streaming_content), png_bytes(checkerboard()))

    def test_not_found(self):
        self.upload()
        self.client.get(reverse("processing"))
        self.analyze([make_face(embedding=unit(8, 1))], [LabeledEmbeddings("001", [unit(8, 0)])])

        r = self.client.get(reverse("results"))
        self.assertContains(r, "User Not Found")
        self.assertNotContains(r, "Identity Match Found!")
        self.assertEqual(self.client.get(reverse("results_download")).status_code, 404)

    def test_validation_message_is_shown(self):
        self.upload()
        self.analyze([], [])
        self.assertContains(self.client.get(reverse("results")), "No face detected.")

    def test_processing_failure(self):
        self.upload()
        with mock.patch("recognition.views.ensure_models", side_effect=RuntimeError("boom")):
            self.client.post(reverse("analyze"))
        self.assertContains(self.client.get(reverse("results")), "Processing failed. Please try again.")

    def test_new_capture_replaces_previous_outcome(self):
        self.upload()
        self.analyze([], [])
        self.client.get(reverse("home"))
        self.upload()
        self.assertRedirects(self.client.get(reverse("results")), reverse("home"), fetch_redirect_response=False)

    def test_unreadable_capture(self):
        self.upload()
        (stored,) = (self.media / "captures").iterdir()
        stored.write_bytes(b"corrupted on disk")
        ensure = mock.Mock()
        with mock.patch("recognition.views.ensure_models", ensure):
            self.client.post(reverse("analyze"))
        ensure.assert_not_called()
        self.assertContains(self.client.get(reverse("results")), "Could not read image.")


class UploadValidationTest(ViewsTestBase):
    def test_not_an_image_type(self):
        r = self.upload(b"hello", content_type="text/plain")
        self.assertContains(r, "Please select a valid image file", status_code=400)

    def test_undecodable_image(self):
        r = self.upload(b"not really a png")
        self.assertContains(r, "Please select a valid image file", status_code=400)

    @override_settings(MAX_UPLOAD_BYTES=10)
    def test_too_large(self):
        r = self.upload()
        self.assertContains(r, "File size must be less than 10MB", status_code=400)

    def test_models_loading_refuses_capture(self):
        self.client.get(reverse("upload"))
        with mock.patch("recognition.views.models_loading", return_value=True):
            r = self.client.post(
                reverse("upload"),
                data={"image": SimpleUploadedFile("eye.png", png_bytes(checkerboard()), content_type="image/png")},
            )
        self.assertContains(r, "Models are still loading. Please wait...")


class CameraTest(ViewsTestBase):
    def _data_url(self):
        return "data:image/png;base64," + base64.b64encode(png_bytes(checkerboard())).decode()

    def test_data_url_capture(self):
        self.assertEqual(self.client.get(reverse("camera")).status_code, 200)
        r = self.client.post(reverse("camera"), data={"image_data": self._data_url()})
        self.assertRedirects(r, reverse("processing"), fetch_redirect_response=False)

    def test_capture_keeps_image_type(self):
        self.client.get(reverse("camera"))
        self.client.post(reverse("camera"), data={"image_data": self._data_url()})
        r = self.client.get(reverse("capture_image"))
        self.assertEqual(r["Content-Type"], "image/png")
        self.assertEqual([p.suffix for p in (self.media / "captures").iterdir()], [".png"])

    def test_models_loading_refuses_capture(self):
        self.client.get(reverse("camera"))
        with mock.patch("recognition.views.models_loading", return_value=True):
            r = self.client.post(reverse("camera"), data={"image_data": self._data_url()})
        self.assertContains(r, "Models are still loading. Please wait...")
        self.assertFalse((self.media / "captures").exists())

    def test_missing_image_data(self):
        self.client.get(reverse("camera"))
        r = self.client.post(reverse("camera"), data={"image_data": "garbage"})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.content, b"No image data")


class NavigationTest(ViewsTestBase):
    def test_processing_without_capture_goes_home(self):
        r = self.client.get(reverse("processing"))
        self.assertRedirects(r, reverse("home"), fetch_redirect_response=False)

    def test_results_without_outcome_goes_home(self):
        r = self.client.get(reverse("results"))
        self.assertRedirects(r, reverse("home"), fetch_redirect_response=False)

    def test_capture_from_results_screen_goes_home(self):
        self.upload()
        self.analyze([], [])
        self.client.get(reverse("results"))
        r = self.client.get(reverse("camera"))
        self.assertRedirects(r, reverse("home"), fetch_redirect_response=False)

    def test_home_and_privacy(self):
        self.assertContains(self.client.get(reverse("home")), "EyeID")
        self.assertEqual(self.client.get(reverse("privacy")).status_code, 200)


class MiscViewsTest(ViewsTestBase):
    def test_client_log(self):
        r = self.client.post(reverse("client_log"), data=json.dumps({"event": "camera_start"}),
                             content_type="application/json")
        self.assertEqual(r.status_code, 204)
        r = self.client.post(reverse("client_log"), data="{nope", content_type="application/json")
        self.assertEqual(r.status_code, 400)
        r = self.client.post(reverse("client_log"), data="[1, 2]", content_type="application/json")
        self.assertEqual(r.status_code, 400)

    def test_status(self):
        with mock.patch("recognition.views.get_profile_index", return_value=_index([])):
            r = self.client.get(reverse("status"))
        info = r.json()
        self.assertEqual(info["profiles_total"], 2)
        self.assertEqual(info["profiles_indexed"], 0)
        self.assertIn(info["models"], ("idle", "loading", "ready", "failed"))

    def test_remote_profile_image_redirects(self):
        r = self.client.get(reverse("profile_image", args=["002"]))
        self.assertEqual(r.status_code, 302)
        self.assertTrue(r["Location"].startswith("https://images.pexels.com/"))
        self.assertEqual(self.client.get(reverse("profile_image", args=["999"])).status_code, 404)
