# recognition/views.py
from __future__ import annotations

import json
import logging
import mimetypes
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

import onnxruntime as ort
from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.http import (
    FileResponse,
    Http404,
    HttpRequest,
    HttpResponse,
    HttpResponseBadRequest,
    JsonResponse,
)
from django.shortcuts import redirect, render
from django.urls import reverse
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from django.views.generic import View
from mlflow import (  # type: ignore
    log_artifacts,
    log_metric,
    set_experiment,
    set_tracking_uri,
    start_run,
)

from eyeid.decorators import log_call
from .forms import CameraCaptureForm, EyeImageUploadForm
from .profiles import MOCK_PROFILES, get_profile
from .services.debug_vis import draw_face
from .services.image_io import decode_image_bytes, imwrite
from .services.model_loader import MODEL_BUNDLE, ensure_models, models_loading
from .services.pipeline import (
    MSG_FAILED,
    MSG_UNREADABLE,
    STEPS,
    PipelineOutcome,
    run_pipeline,
)
from .services.profile_index import get_profile_index
from .services.quality import image_quality_metrics
from .state import InvalidTransition, Screen, ScreenFlow

logger = logging.getLogger("app")

MSG_MODELS_LOADING = "Models are still loading. Please wait..."
CAPTURE_DIR = "captures"

mimetypes.add_type("image/webp", ".webp")


# ============================ СЕССИЯ ============================

def _session_pop(request: HttpRequest, key: str) -> Optional[Any]:
    val = request.session.get(key)
    if key in request.session:
        del request.session[key]
        request.session.modified = True
    return val


def _session_set(request: HttpRequest, key: str, value: Any) -> None:
    request.session[key] = value
    request.session.modified = True


def _capture_path(request: HttpRequest) -> Optional[str]:
    path = request.session.get("capture_path")
    if path and not default_storage.exists(path):
        _session_set(request, "capture_path", None)
        return None
    return path


def _store_capture(request: HttpRequest, content: bytes, ext: str) -> str:
    """Новый снимок заменяет предыдущий: старый файл удаляем сразу."""
    old = request.session.get("capture_path")
    if old and default_storage.exists(old):
        default_storage.delete(old)
    path = default_storage.save(f"{CAPTURE_DIR}/{uuid.uuid4().hex}{ext}", ContentFile(content))
    _session_set(request, "capture_path", path)
    _session_pop(request, "outcome")
    return path


def _outcome(request: HttpRequest) -> Optional[PipelineOutcome]:
    payload = request.session.get("outcome")
    return PipelineOutcome.from_session(payload) if payload else None


def _go(request: HttpRequest, screen: Screen) -> bool:
    """Переход на экран; при недопустимом переходе сбрасываем навигацию на главную."""
    flow = ScreenFlow(request.session)
    try:
        flow.go(screen)
        return True
    except InvalidTransition as e:
        logger.warning("Illegal navigation %s, back to home", e)
        flow.reset()
        return False


def _ext_for(content_type: str) -> str:
    content_type = (content_type or "").lower()
    if content_type in ("image/jpeg", "image/jpg", "image/pjpeg"):
        return ".jpg"
    if content_type == "image/webp":
        return ".webp"
    return mimetypes.guess_extension(content_type) or ".jpg"


# ============================ ВСПОМОГАТЕЛЬНОЕ ============================

def _log_to_mlflow(outcome: PipelineOutcome) -> None:
    uri = getattr(settings, "MLFLOW_TRACKING_URI", "")
    if not uri:
        return
    try:
        set_tracking_uri(uri)
        set_experiment(getattr(settings, "MLFLOW_EXPERIMENT", "eye_scan_matching"))
        with start_run():
            if outcome.distance is not None:
                log_metric("distance", outcome.distance)
            if outcome.confidence is not None:
                log_metric("confidence", outcome.confidence)
            log_metric("matched", int(outcome.matched))
            log_metric("elapsed_ms", outcome.elapsed_ms)
            crops = Path(settings.MEDIA_ROOT) / "crops"
            if crops.exists():
                log_artifacts(str(crops))
    except Exception as e:
        logger.error("MLflow logging error: %s", e)


def _save_annotated(img, outcome: PipelineOutcome) -> None:
    if not getattr(settings, "SAVE_ANNOTATED_CAPTURES", False) or outcome.face is None:
        return
    label = outcome.match.name if outcome.match else outcome.message
    out = draw_face(img, outcome.face, text=label)
    imwrite(Path(settings.MEDIA_ROOT) / "crops" / f"{int(time.time() * 1000)}.jpg", out)


# ============================ ЭКРАНЫ ============================

class HomeView(View):
    template_name = "recognition/home.html"

    @log_call("HomeView.get")
    def get(self, request: HttpRequest, *args, **kwargs) -> HttpResponse:
        _go(request, Screen.HOME)
        ctx = {
            "profiles_count": len(MOCK_PROFILES),
            "model_state": MODEL_BUNDLE.state.value,
        }
        return render(request, self.template_name, ctx)


class PrivacyView(View):
    template_name = "recognition/privacy.html"

    @log_call("PrivacyView.get")
    def get(self, request: HttpRequest, *args, **kwargs) -> HttpResponse:
        if not _go(request, Screen.PRIVACY):
            return redirect(reverse("home"))
        return render(request, self.template_name)


class CameraView(View):
    """GET: страница камеры. POST: base64-кадр с canvas."""
    template_name = "recognition/camera.html"

    def _render(self, request: HttpRequest, error: Optional[str] = None, status: int = 200) -> HttpResponse:
        ctx = {"error": error, "models_loading": models_loading()}
        return render(request, self.template_name, ctx, status=status)

    @log_call("CameraView.get")
    def get(self, request: HttpRequest, *args, **kwargs) -> HttpResponse:
        if not _go(request, Screen.CAMERA):
            return redirect(reverse("home"))
        return self._render(request)

    @log_call("CameraView.post")
    def post(self, request: HttpRequest, *args, **kwargs) -> HttpResponse:
        if models_loading():
            return self._render(request, MSG_MODELS_LOADING)

        form = CameraCaptureForm(request.POST)
        if not form.is_valid():
            logger.error("Invalid camera capture: %s", form.errors.as_json())
            return HttpResponseBadRequest("No image data")
        content_type, content = form.cleaned_data["image_data"]
        try:
            decode_image_bytes(content)
        except ValueError as e:
            logger.error("Camera frame is not an image: %s", e)
            return HttpResponseBadRequest("No image data")

        if not _go(request, Screen.PROCESSING):
            return redirect(reverse("home"))
        path = _store_capture(request, content, _ext_for(content_type))
        logger.info("Camera frame captured -> %s", path)
        return redirect(reverse("processing"))


class UploadView(View):
    template_name = "recognition/upload.html"

    def _render(self, request, form, error: Optional[str] = None, status: int = 200) -> HttpResponse:
        ctx = {"form": form, "error": error, "models_loading": models_loading()}
        return render(request, self.template_name, ctx, status=status)

    @log_call("UploadView.get")
    def get(self, request: HttpRequest, *args, **kwargs) -> HttpResponse:
        if not _go(request, Screen.UPLOAD):
            return redirect(reverse("home"))
        return self._render(request, EyeImageUploadForm())

    @log_call("UploadView.post")
    def post(self, request: HttpRequest, *args, **kwargs) -> HttpResponse:
        form = EyeImageUploadForm(request.POST, request.FILES)
        if models_loading():
            return self._render(request, form, MSG_MODELS_LOADING)
        if not form.is_valid():
            logger.error("Invalid upload: %s", form.errors.as_json())
            return self._render(request, form, status=400)

        file = form.cleaned_data["image"]
        content = file.read()
        try:
            decode_image_bytes(content)
        except ValueError as e:
            logger.error("Uploaded file is not an image: %s", e)
            form.add_error("image", "Please select a valid image file")
            return self._render(request, form, status=400)

        if not _go(request, Screen.PROCESSING):
            return redirect(reverse("home"))
        path = _store_capture(request, content, _ext_for(file.content_type))
        logger.info("Image uploaded (%s, %d bytes) -> %s", file.name, len(content), path)
        return redirect(reverse("processing"))


class ProcessingView(View):
    """Экран прогресса; сам пайплайн запускается POST-ом на analyze."""
    template_name = "recognition/processing.html"

    @log_call("ProcessingView.get")
    def get(self, request: HttpRequest, *args, **kwargs) -> HttpResponse:
        if _capture_path(request) is None or not _go(request, Screen.PROCESSING):
            ScreenFlow(request.session).reset()
            return redirect(reverse("home"))
        steps = [{"key": k, "label": label, "description": d, "progress": p} for k, label, d, p in STEPS]
        return render(request, self.template_name, {"steps": steps})


class AnalyzeView(View):
    @log_call("AnalyzeView.post")
    def post(self, request: HttpRequest, *args, **kwargs) -> HttpResponse:
        path = _capture_path(request)
        flow = ScreenFlow(request.session)
        if path is None or flow.current != Screen.PROCESSING:
            logger.warning("Analyze: nothing to process (capture=%s, screen=%s)", path, flow.current.value)
            flow.reset()
            return redirect(reverse("home"))

        try:
            with default_storage.open(path, "rb") as f:
                content = f.read()
            img = decode_image_bytes(content)
            logger.info("Analyze: %s quality=%s", path, image_quality_metrics(img))
        except ValueError as e:
            logger.error("Analyze: unreadable capture %s: %s", path, e)
            outcome = PipelineOutcome(message=MSG_UNREADABLE)
        else:
            try:
                analyzer = ensure_models()
                outcome = run_pipeline(img, analyzer, get_profile_index())
                _save_annotated(img, outcome)
            except Exception:
                logger.exception("Analyze: processing failed for %s", path)
                outcome = PipelineOutcome(message=MSG_FAILED)

        _session_set(request, "outcome", outcome.as_session())
        _log_to_mlflow(outcome)
        flow.go(Screen.RESULTS)
        return redirect(reverse("results"))


class ResultsView(View):
    template_name = "recognition/results.html"

    @log_call("ResultsView.get")
    def get(self, request: HttpRequest, *args, **kwargs) -> HttpResponse:
        outcome = _outcome(request)
        if outcome is None or not _go(request, Screen.RESULTS):
            ScreenFlow(request.session).reset()
            return redirect(reverse("home"))
        ctx = {
            "outcome": outcome,
            "match": outcome.match,
            "has_capture": _capture_path(request) is not None,
        }
        return render(request, self.template_name, ctx)


class ResultDownloadView(View):
    @log_call("ResultDownloadView.get")
    def get(self, request: HttpRequest, *args, **kwargs) -> HttpResponse:
        outcome = _outcome(request)
        if outcome is None or outcome.match is None:
            raise Http404("No match to download")
        resp = JsonResponse(outcome.match.as_dict(), json_dumps_params={"indent": 2, "ensure_ascii": False})
        resp["Content-Disposition"] = f'attachment; filename="eye-scan-result-{int(time.time() * 1000)}.json"'
        return resp


# ============================ ИЗОБРАЖЕНИЯ ============================

class CapturedImageView(View):
    """Снимок текущей сессии; чужие снимки по этому адресу недоступны."""

    def get(self, request: HttpRequest, *args, **kwargs) -> HttpResponse:
        path = _capture_path(request)
        if path is None:
            raise Http404("No captured image")
        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        return FileResponse(default_storage.open(path, "rb"), content_type=content_type)


class ProfileImageView(View):
    def get(self, request: HttpRequest, profile_id: str, *args, **kwargs) -> HttpResponse:
        profile = get_profile(profile_id)
        if profile is None:
            raise Http404("Unknown profile")
        if profile.remote_image:
            return redirect(profile.profile_image)
        base = Path(getattr(settings, "PROFILE_IMAGES_DIR", "profiles")).resolve()
        path = (base / profile.profile_image).resolve()
        if base not in path.parents or not path.is_file():
            raise Http404("Profile image not found")
        content_type = mimetypes.guess_type(str(path))[0] or "application/octet-stream"
        return FileResponse(path.open("rb"), content_type=content_type)


# ============================ ДИАГНОСТИКА / ЛОГИ ============================

@method_decorator(csrf_exempt, name="dispatch")
class ClientLogView(View):
    """
    Принимает JSON: {event: str, details: dict|null, ts: int}
    Пишет в общий лог 'app' на уровне INFO.
    """

    @log_call("ClientLogView.post")
    def post(self, request: HttpRequest, *args, **kwargs) -> HttpResponse:
        try:
            payload = json.loads(request.body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return HttpResponseBadRequest("invalid json")
        if not isinstance(payload, dict):
            return HttpResponseBadRequest("invalid json")

        event = str(payload.get("event", ""))
        details = payload.get("details", None)
        ts = payload.get("ts", None)
        logger.info("client_event: %s | details=%s | ts=%s", event, details, ts)
        return HttpResponse(status=204)


class StatusView(View):
    """Состояние моделей и индекса профилей + ML-среда (PyTorch/ONNXRuntime)."""

    @log_call("StatusView.get")
    def get(self, request: HttpRequest, *args, **kwargs) -> JsonResponse:
        index = get_profile_index()
        info: Dict[str, Any] = {
            "backend": getattr(settings, "FACE_BACKEND", "insightface"),
            "models": MODEL_BUNDLE.state.value,
            "models_error": MODEL_BUNDLE.error,
            "profiles_total": len(MOCK_PROFILES),
            "profiles_indexed": len(index) if index.built else None,
        }
        try:
            import torch
            info["torch_version"] = getattr(torch, "__version__", None)
            info["torch_cuda_available"] = bool(torch.cuda.is_available())
        except Exception as e:
            info["torch_error"] = str(e)
        try:
            info["onnxruntime_providers"] = ort.get_available_providers()
            info["onnxruntime_version"] = getattr(ort, "__version__", None)
        except Exception as e:
            info["onnxruntime_error"] = str(e)

        return JsonResponse(info, json_dumps_params={"ensure_ascii": False})
