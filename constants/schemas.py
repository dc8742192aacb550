from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

TABLE_NAME = "delivery_records"


# --- Delivery record as stored in the delivery_records table ---


class DeliveryRecord(BaseModel):
    """One IOM production order.

    Field names are the backend (wire) columns, aliases are the spreadsheet
    (display) headers. Columns that are not declared here are kept as extras.

    The model is the column registry: the mapping tables, the numeric column
    set and the setup SQL are derived from it. Rows are not validated through
    it; record_mapper coerces each cell by column type instead.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    # Core info
    iom_no: Optional[float] = Field(default=None, alias="IOM NO.")
    ref_iom_fab_iom: Optional[str] = Field(default=None, alias="Ref. IOM/ Fab. IOM")
    buyer: Optional[str] = Field(default=None, alias="BUYER")
    garments: Optional[str] = Field(default=None, alias="GARMENTS")
    fabric_composition: Optional[str] = Field(default=None, alias="FABRIC COMPOSITION")
    construction: Optional[str] = Field(default=None, alias="CONSTRUCTION")
    weave: Optional[str] = Field(default=None, alias="WEAVE")
    blend_non_blend: Optional[str] = Field(default=None, alias="Blend/Non Blend")
    finish_gsm: Optional[float] = Field(default=None, alias="FINISH GSM")
    greige_width: Optional[float] = Field(default=None, alias="GREIGE WIDTH")
    finish_width: Optional[float] = Field(default=None, alias="FINISH WIDTH")
    color: Optional[str] = Field(default=None, alias="COLOR")
    order_qty_yds: Optional[float] = Field(default=None, alias="ORDER QTY. (YDS)")
    emerizing: Optional[str] = Field(default=None, alias="EMERIZING")
    emerizing_mc_name: Optional[str] = Field(default=None, alias="EMERIZING MC Name")
    finish: Optional[str] = Field(default=None, alias="Finish")
    process_route: Optional[str] = Field(default=None, alias="PROCESS ROUTE")
    development_type: Optional[str] = Field(default=None, alias="Development Type")
    user_name: Optional[str] = Field(default=None, alias="USER NAME")

    # Dates & OTP
    iom_creation_date: Optional[str] = Field(default=None, alias="IOM Creation Date")
    weaving_iom_recv_date: Optional[str] = Field(default=None, alias="Weaving IOM recv.Date")
    proposed_greige_rcv_date: Optional[str] = Field(
        default=None, alias="Proposed Greige rcv Date"
    )
    finished_s_y_ready_date_tentative: Optional[str] = Field(
        default=None, alias="FINISHED S/Y Ready Date (Tentative)"
    )
    actual_grey_issue_date: Optional[str] = Field(default=None, alias="Actual GREY ISSUE DATE")
    otp_iom_cration_to_delivery: Optional[str] = Field(
        default=None, alias="OTP IOM cration To Delivery"
    )
    otp_weaving: Optional[str] = Field(default=None, alias="OTP WEAVING")
    grey_rcvd_yds: Optional[float] = Field(default=None, alias="GREY RCVD. (YDS)")

    # Stages & status
    department: Optional[str] = Field(default=None, alias="DEPARTMENT")
    stage_1: Optional[str] = Field(default=None, alias="Stage-1")
    stage_2: Optional[str] = Field(default=None, alias="Stage-2")
    grey_hold: Optional[str] = Field(default=None, alias="Grey Hold")
    actual_sample_ready_date: Optional[str] = Field(
        default=None, alias="ACTUAL SAMPLE READY DATE"
    )
    process_otp: Optional[str] = Field(default=None, alias="PROCESS OTP")
    greige_source: Optional[str] = Field(default=None, alias="Greige Source")
    floor: Optional[str] = Field(default=None, alias="Floor")
    lead_time_iom_creation_to_dispatch: Optional[str] = Field(
        default=None, alias="Lead time (IOM Creation to Dispatch)"
    )

    # Process details
    singeing_desize_process_date: Optional[str] = Field(
        default=None, alias="Singeing/Desize/Process date"
    )
    singeing_qty: Optional[float] = Field(default=None, alias="Singeing QTY")
    bleach: Optional[str] = Field(default=None, alias="Bleach")
    mercerized: Optional[str] = Field(default=None, alias="Mercerized")
    peach: Optional[str] = Field(default=None, alias="Peach")
    ptr_days: Optional[float] = Field(default=None, alias="ptr days")

    # Lab
    dye_lab_in: Optional[str] = Field(default=None, alias="Dye Lab in")
    dye_lab_out: Optional[str] = Field(default=None, alias="Dye Lab Out")
    dye_lab_days: Optional[float] = Field(default=None, alias="Dye Lab Days")

    # Dyeing
    dyeing_in_date: Optional[str] = Field(default=None, alias="Dyeing In date")
    dyeing_floor: Optional[str] = Field(default=None, alias="Dyeing Floor")
    dye_mc_name: Optional[str] = Field(default=None, alias="Dye MC Name")
    dyeing_qty: Optional[float] = Field(default=None, alias="Dyeing Qty")
    topping_1: Optional[str] = Field(default=None, alias="Topping-1")
    topping_2: Optional[str] = Field(default=None, alias="Topping-2")
    topping_3: Optional[str] = Field(default=None, alias="Topping-3")
    topping_4: Optional[str] = Field(default=None, alias="Topping-4")
    dyeing_out_date: Optional[str] = Field(default=None, alias="Dyeing Out date")
    dyeing_days: Optional[float] = Field(default=None, alias="Dyeing Days")

    # Print
    print_in_date: Optional[str] = Field(default=None, alias="Print in Date")
    print_qty: Optional[float] = Field(default=None, alias="Print Qty")
    print_out_date: Optional[str] = Field(default=None, alias="Print Out Date")
    print_days: Optional[float] = Field(default=None, alias="Print Days")

    # Final delivery
    finish_date: Optional[str] = Field(default=None, alias="Finish Date")
    delivery_date: Optional[str] = Field(default=None, alias="DELIVERY DATE")
    delivery_qty_yds: Optional[float] = Field(default=None, alias="DELIVERY QTY. (YDS)")
    before_ins_mkt_rcvd_qty_yds: Optional[float] = Field(
        default=None, alias="BEFORE INS. MKT RCVD. QTY (YDS)"
    )
    mcp_folder_status: Optional[str] = Field(default=None, alias="MCP Folder Status")
    remarks: Optional[str] = Field(default=None, alias="Remarks")

    @classmethod
    def wire_columns(cls) -> List[str]:
        """Backend column names in table order."""
        return list(cls.model_fields.keys())

    @classmethod
    def numeric_columns(cls) -> List[str]:
        """Backend columns that hold numbers rather than text."""
        return [
            name
            for name, field in cls.model_fields.items()
            if field.annotation == Optional[float]
        ]


WIRE_TO_DISPLAY: Dict[str, str] = {
    name: field.alias for name, field in DeliveryRecord.model_fields.items()
}
DISPLAY_TO_WIRE: Dict[str, str] = {display: wire for wire, display in WIRE_TO_DISPLAY.items()}
NUMERIC_COLUMNS = frozenset(DeliveryRecord.numeric_columns())

# Codes returned by PostgREST/Postgres when the table or one of its columns is missing
SCHEMA_ERROR_CODES = frozenset({"PGRST205", "PGRST204", "42P01", "42703"})


def build_setup_sql(table_name: str = TABLE_NAME) -> str:
    """Render the CREATE TABLE script an operator runs in the Supabase SQL editor."""
    column_lines = ["  id bigint primary key generated always as identity"]
    for column in DeliveryRecord.wire_columns():
        if column == "iom_no":
            sql_type = "bigint"
        elif column in NUMERIC_COLUMNS:
            sql_type = "numeric"
        else:
            sql_type = "text"
        column_lines.append(f"  {column} {sql_type}")
    column_lines.append("  created_at timestamptz default now()")

    return "\n".join(
        [
            f"DROP TABLE IF EXISTS {table_name};",
            f"CREATE TABLE {table_name} (",
            ",\n".join(column_lines),
            ");",
            f"ALTER TABLE {table_name} ENABLE ROW LEVEL SECURITY;",
            f'CREATE POLICY "Public Access" ON {table_name} FOR ALL USING (true) WITH CHECK (true);',
        ]
    )
