# app/models/__init__.py
"""
统一导出 ORM 模型（扫码链路涉及的表）。
"""

from importlib import import_module


def _export(module_name: str, class_name: str) -> None:
    module = import_module(module_name)
    globals()[class_name] = getattr(module, class_name)


MODEL_SPECS = [
    # -------- 标签 --------
    ("app.models.asset_tag", "AssetTag"),
    # -------- 载体 --------
    ("app.models.location", "Location"),
    ("app.models.article", "Article"),
    ("app.models.equipment", "Equipment"),
    ("app.models.case", "Case"),
    # -------- job 关联 --------
    ("app.models.job", "Job"),
    ("app.models.job", "JobBookedAsset"),
    ("app.models.job", "JobAssetOnJob"),
]

for _mod, _cls in MODEL_SPECS:
    _export(_mod, _cls)

__all__ = [cls for _, cls in MODEL_SPECS]
