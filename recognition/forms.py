# recognition/forms.py
from django import forms
from django.conf import settings

from .services.image_io import decode_data_url


class EyeImageUploadForm(forms.Form):
    image = forms.FileField()

    def clean_image(self):
        f = self.cleaned_data["image"]
        content_type = getattr(f, "content_type", "") or ""
        if not content_type.startswith("image/"):
            raise forms.ValidationError("Please select a valid image file")
        if f.size > int(getattr(settings, "MAX_UPLOAD_BYTES", 10 * 1024 * 1024)):
            raise forms.ValidationError("File size must be less than 10MB")
        return f


class CameraCaptureForm(forms.Form):
    """data:image/jpeg;base64,... с canvas.toDataURL на странице камеры."""
    image_data = forms.CharField()

    def clean_image_data(self):
        """Возвращает (content_type, bytes)."""
        try:
            content_type, content = decode_data_url(self.cleaned_data["image_data"])
        except ValueError:
            raise forms.ValidationError("No image data")
        if len(content) > int(getattr(settings, "MAX_UPLOAD_BYTES", 10 * 1024 * 1024)):
            raise forms.ValidationError("File size must be less than 10MB")
        return content_type, content
