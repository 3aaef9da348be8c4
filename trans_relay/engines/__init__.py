# trans_relay/engines/__init__.py
"""翻译后端适配器。每个模块提供一个 `BaseTranslationEngine` 子类，由 engine_registry 自动发现。"""
