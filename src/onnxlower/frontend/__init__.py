from .onnx_import import load_source, source_from_onnx

__all__ = ["load_source", "source_from_onnx"]
