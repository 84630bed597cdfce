"""Material master translation (ERP -> MES ``ERPProductNew`` / ``ERPProductChange``).

Each plant of a material gets its own pair of documents, since the MES
keeps products per plant.
"""

from typing import Dict, List

from core.conversions import CodeTables
from core.models.erp import MaterialMasterEvent, PlantData, ProductDescription
from translators.common import ArchiveDocument, ConsistencyError, sanitize_filename, text

MES_MESSAGE_TYPES = "ERPProductNew ERPProductChange"
ENGLISH = "EN"
MES_PROFILE_CODE = "G3"


def english_description(material: MaterialMasterEvent) -> ProductDescription:
    """
    Raises:
        ConsistencyError: If the material has no English description
    """
    for description in material.descriptions:
        if description.language == ENGLISH:
            return description
    raise ConsistencyError("No english description found")


def create_product_xml(product: str, description: str, mes_uom: str) -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<Root TransactionType="ERPProductNew">\n'
        "  <ProductInfo>\n"
        f"    <Product><![CDATA[{product}]]></Product>\n"
        "    <Revision>1</Revision>\n"
        f"    <ERPDescription><![CDATA[{description}]]></ERPDescription>\n"
        f"    <PrimaryUOM>{mes_uom}</PrimaryUOM>\n"
        "    <ProductType>UNMODELED</ProductType>\n"
        "    <NonAccretiveIssue>True</NonAccretiveIssue>\n"
        "    <LotControlled>True</LotControlled>\n"
        "  </ProductInfo>\n"
        "</Root>\n"
    )


def update_product_xml(product: str, description: str, mes_uom: str, country_of_origin: str) -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<Root TransactionType="ERPProductChange">\n'
        "  <ProductInfo>\n"
        f"    <Product><![CDATA[{product}]]></Product>\n"
        "    <Revision>1</Revision>\n"
        f"    <ERPDescription><![CDATA[{description}]]></ERPDescription>\n"
        f"    <PrimaryUOM>{mes_uom}</PrimaryUOM>\n"
        f"    <CountryOfOrigin>{country_of_origin}</CountryOfOrigin>\n"
        "  </ProductInfo>\n"
        "</Root>\n"
    )


def build_plant_documents(
    material: MaterialMasterEvent,
    plant: PlantData,
    tables: CodeTables,
) -> List[ArchiveDocument]:
    """Create and update documents of one plant, in archive order.

    Raises:
        ConsistencyError: If the material has no English description
        LookupNotFoundError: For plants or units without a MES code
    """
    mes_plant = tables.plant.to_mes(plant.plant)
    description = text(english_description(material).description)
    mes_uom = tables.uom.to_mes(material.base_unit_iso_code)
    product = text(material.product)

    return [
        ArchiveDocument(
            "CreateXmlBlob",
            f"create-{mes_plant}.xml",
            create_product_xml(product, description, mes_uom),
        ),
        ArchiveDocument(
            "UpdateXmlBlob",
            f"update-{mes_plant}.xml",
            update_product_xml(product, description, mes_uom, text(plant.country_of_origin)),
        ),
    ]


def build_mes_message(product: str, mes_plant: str, message_id: str, blob_names: Dict[str, str]) -> Dict[str, str]:
    """Message telling the MES where to pick up the documents of one plant."""
    return {
        "MaterialNumber": product,
        "Plant": mes_plant,
        "Filename": sanitize_filename(f"MM-{product}-{mes_plant}-{message_id}.xml"),
        "CreateXmlBlob": blob_names["CreateXmlBlob"],
        "UpdateXmlBlob": blob_names["UpdateXmlBlob"],
    }
