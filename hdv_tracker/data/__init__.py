from .items import item_name, item_name_short, category_name, add_item, add_category

__all__ = ["item_name", "item_name_short", "category_name", "add_item", "add_category"]
