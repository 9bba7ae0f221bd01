# scripts/download_models.py
"""
Заполняет локальное хранилище весов (WEIGHTS_DIR), из которого читает model_loader.

  - бандл InsightFace (antelopev2 | buffalo_l) -> weights/models/<bundle>/*.onnx
  - для бэкенда "yolo": yolo11n-face.pt + glintr100.onnx -> weights/

Пример:
  python -m scripts.download_models                       # бандл из config.toml
  python -m scripts.download_models --model-name antelopev2
  python -m scripts.download_models --target yolo
"""

import argparse
import shutil
import sys
import tomllib
import zipfile
from pathlib import Path
from typing import Iterable, List
from urllib.request import Request, urlopen

BUNDLE_URLS = {
    "antelopev2": "https://github.com/deepinsight/insightface/releases/download/v0.7/antelopev2.zip",
    "buffalo_l": "https://github.com/deepinsight/insightface/releases/download/v0.7/buffalo_l.zip",
}

YOLO_FILES = {
    "yolo11n-face.pt": [
        "https://huggingface.co/AdamCodd/YOLOv11n-face-detection/resolve/main/model.pt?download=true",
        "https://huggingface.co/deepghs/yolo-face/resolve/main/yolov11n-face/model.pt?download=true",
    ],
    "glintr100.onnx": [
        "https://huggingface.co/fofr/comfyui/resolve/main/insightface/models/antelopev2/glintr100.onnx?download=true",
        "https://huggingface.co/rupeshs/antelopev2/resolve/main/glintr100.onnx?download=true",
    ],
}

# Нижняя граница размера: отсекаем HTML-страницы ошибок вместо весов
MIN_SIZE_BYTES = {
    "yolo11n-face.pt": 4 * 1024 * 1024,
    "glintr100.onnx": 200 * 1024 * 1024,
}

DEFAULTS = {
    "bundle": {"name": "buffalo_l"},
    "paths": {"weights_dir": "weights"},
    "download": {"fix_nested": True, "overwrite": False, "timeout": 60},
}


def load_config(path: Path) -> dict:
    if not path.exists():
        return {k: dict(v) for k, v in DEFAULTS.items()}
    with path.open("rb") as f:
        cfg = tomllib.load(f)
    out = DEFAULTS | cfg
    for section in DEFAULTS:
        out[section] = DEFAULTS[section] | cfg.get(section, {})
    return out


def download_to(url: str, dst: Path, timeout: int = 60, overwrite: bool = False) -> bool:
    dst.parent.mkdir(parents=True, exist_ok=True)
    if dst.exists() and not overwrite:
        print(f"Found: {dst}")
        return False
    tmp = dst.with_suffix(dst.suffix + ".part")
    print(f"Downloading {url} -> {dst}")
    req = Request(url, headers={"User-Agent": "eyeid-weights/1.0"})
    with urlopen(req, timeout=timeout) as r, open(tmp, "wb") as f:
        shutil.copyfileobj(r, f, length=1024 * 256)
    tmp.replace(dst)
    return True


def ensure_unzip(zip_path: Path, target_dir: Path, fix_nested: bool = True) -> List[str]:
    target_dir.mkdir(parents=True, exist_ok=True)
    print(f"Unzipping {zip_path} -> {target_dir}")
    with zipfile.ZipFile(zip_path, "r") as zf:
        zf.extractall(target_dir)
    if fix_nested:
        # архив antelopev2 содержит папку antelopev2/ внутри себя
        nested = target_dir / target_dir.name
        if nested.is_dir() and any(nested.iterdir()):
            print(f"Flatten nested structure: {nested} -> {target_dir}")
            for p in nested.iterdir():
                p.replace(target_dir / p.name)
            nested.rmdir()
    return sorted(p.name for p in target_dir.glob("*.onnx"))


def try_download_many(urls: Iterable[str], dst: Path, timeout: int, overwrite: bool) -> None:
    urls = list(urls)
    last_err = None
    for i, url in enumerate(urls, 1):
        print(f"[{i}/{len(urls)}] {url}")
        try:
            download_to(url, dst, timeout=timeout, overwrite=overwrite)
            return
        except Exception as e:
            print(f"  failed: {e}")
            last_err = e
    if last_err:
        raise last_err


def fetch_bundle(bundle: str, weights_dir: Path, cfg: dict, overwrite: bool) -> List[str]:
    if bundle not in BUNDLE_URLS:
        raise SystemExit(f"Unknown bundle '{bundle}'. Allowed: {', '.join(BUNDLE_URLS)}")
    models_dir = weights_dir / "models" / bundle
    zip_path = weights_dir / "models" / f"{bundle}.zip"
    download_to(BUNDLE_URLS[bundle], zip_path, timeout=int(cfg["download"]["timeout"]), overwrite=overwrite)
    onnx_files = ensure_unzip(zip_path, models_dir, fix_nested=bool(cfg["download"]["fix_nested"]))
    if not onnx_files:
        raise SystemExit(f"ONNX files not found in {models_dir}. Check archive contents.")
    return onnx_files


def fetch_yolo(weights_dir: Path, cfg: dict, overwrite: bool) -> List[str]:
    done = []
    for fname, urls in YOLO_FILES.items():
        dst = weights_dir / fname
        try_download_many(urls, dst, timeout=int(cfg["download"]["timeout"]), overwrite=overwrite)
        size = dst.stat().st_size
        if size < MIN_SIZE_BYTES.get(fname, 0):
            raise SystemExit(f"{fname} is too small ({size} bytes): wrong resource downloaded?")
        done.append(fname)
    return done


def main(argv=None) -> None:
    ap = argparse.ArgumentParser(description="Download face model weights into the local model store")
    ap.add_argument("--target", choices=("insightface", "yolo"), default="insightface")
    ap.add_argument("--model-name", choices=BUNDLE_URLS.keys(), help="insightface bundle")
    ap.add_argument("--weights-dir", help="root dir for weights (default from config.toml)")
    ap.add_argument("--config", default="config.toml", help="path to config.toml")
    ap.add_argument("--overwrite", action="store_true", help="force re-download")
    args = ap.parse_args(argv)

    cfg = load_config(Path(args.config))
    weights_dir = Path(args.weights_dir or cfg["paths"]["weights_dir"]).resolve()
    overwrite = args.overwrite or bool(cfg["download"]["overwrite"])

    if args.target == "yolo":
        files = fetch_yolo(weights_dir, cfg, overwrite)
        print("Weights ready in", weights_dir, ":", ", ".join(files))
        print("Run with EYEID_FACE_BACKEND=yolo")
        return

    bundle = args.model_name or cfg["bundle"]["name"]
    files = fetch_bundle(bundle, weights_dir, cfg, overwrite)
    print("Models ready:\n  - " + "\n  - ".join(files))
    print(f"Run with EYEID_WEIGHTS_DIR={weights_dir} EYEID_INSIGHT_BUNDLE={bundle}")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(130)
