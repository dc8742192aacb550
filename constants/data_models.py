# constants/data_models.py

IOM_FIELD = "IOM NO."
BUYER_FIELD = "BUYER"
DELIVERY_DATE_FIELD = "DELIVERY DATE"
FINISH_DATE_FIELD = "Finish Date"
DELIVERY_QTY_FIELD = "DELIVERY QTY. (YDS)"

# do not change - report table and exports use exactly these columns in this order
VISIBLE_COLUMNS = [
    IOM_FIELD,
    BUYER_FIELD,
    "FABRIC COMPOSITION",
    "CONSTRUCTION",
    "WEAVE",
    "COLOR",
    "EMERIZING",
    "Dyeing Floor",
    "Dye MC Name",
    FINISH_DATE_FIELD,
    DELIVERY_DATE_FIELD,
    DELIVERY_QTY_FIELD,
    "Remarks",
]

DATE_COLUMNS = [FINISH_DATE_FIELD, DELIVERY_DATE_FIELD]

# Text filters: display key -> label shown on the filter panel
FILTER_FIELDS = {
    IOM_FIELD: "IOM Number",
    BUYER_FIELD: "Buyer",
    "FABRIC COMPOSITION": "Fabric Composition",
    "CONSTRUCTION": "Construction",
    "COLOR": "Color",
}

PAGE_SIZE_OPTIONS = (20, 50, 100)
DEFAULT_PAGE_SIZE = PAGE_SIZE_OPTIONS[0]

VIEW_REPORT = "view"
VIEW_ADMIN = "admin"
