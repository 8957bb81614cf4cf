"""Turn a parsed NF-e tree into an :class:`Invoice`."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import Invoice, InvoiceHeader, LineItem
from .utils import optional_float, safe_float, safe_int, to_datetime


LOGGER = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"


class MalformedInvoice(ValueError):
    """Raised when a document lacks the structural nodes every NF-e carries."""

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        self.source = source
        if source:
            message = f"{message} ({source})"
        super().__init__(message)


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _get(node: Any, path: str) -> Any:
    current = node
    for part in path.split("/"):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def _text(node: Any, path: str) -> Optional[str]:
    value = _get(node, path)
    if isinstance(value, Mapping):
        value = value.get("#text")
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _group_value(group: Any, field: str) -> Any:
    """Read ``field`` from whichever sub-group a tax block uses.

    ``ICMS`` holds exactly one of ``ICMS00``, ``ICMS10``, ``ICMSSN202``...;
    ``PIS``/``COFINS`` hold ``PISAliq``, ``PISOutr``, ``PISST`` and so on.
    """

    if not isinstance(group, Mapping):
        return None
    if field in group:
        return group[field]
    for key, child in group.items():
        if key.startswith("@"):
            continue
        for entry in _as_list(child):
            if isinstance(entry, Mapping) and entry.get(field) not in (None, ""):
                return entry[field]
    return None


class InvoiceNormalizer:
    """Build canonical :class:`Invoice` values from parsed NF-e trees."""

    ROOT_PATHS = ("nfeProc/NFe/infNFe", "NFe/infNFe", "infNFe")

    def normalize(self, tree: Mapping[str, Any], *, source: Optional[str] = None) -> Invoice:
        inf_nfe = self._find_inf_nfe(tree)
        if inf_nfe is None:
            raise MalformedInvoice("Invalid NF-e structure: <infNFe> not found", source)

        dets = _as_list(inf_nfe.get("det"))
        if not dets:
            raise MalformedInvoice("Invalid NF-e structure: <det> not found", source)

        totals = _get(inf_nfe, "total/ICMSTot")
        if not isinstance(totals, Mapping):
            raise MalformedInvoice("Invalid NF-e structure: <ICMSTot> not found", source)

        header = self._build_header(inf_nfe, totals)
        items = list(self._build_items(dets, source))
        if not items:
            raise MalformedInvoice("Invalid NF-e structure: no <det> carries a <prod> block", source)

        invoice_id = self._invoice_id(inf_nfe, header, source)
        LOGGER.debug("Normalized invoice %s with %s items", invoice_id, len(items))
        return Invoice(invoice_id=invoice_id, header=header, items=items, source=source)

    def _find_inf_nfe(self, tree: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        if not isinstance(tree, Mapping):
            return None
        for path in self.ROOT_PATHS:
            node = _get(tree, path)
            if isinstance(node, Mapping):
                return node
        return None

    @staticmethod
    def _build_header(inf_nfe: Mapping[str, Any], totals: Mapping[str, Any]) -> InvoiceHeader:
        return InvoiceHeader(
            emitter_name=_text(inf_nfe, "emit/xNome") or NOT_AVAILABLE,
            emitter_cnpj=_text(inf_nfe, "emit/CNPJ") or _text(inf_nfe, "emit/CPF") or NOT_AVAILABLE,
            invoice_number=_text(inf_nfe, "ide/nNF") or NOT_AVAILABLE,
            issue_date=to_datetime(_text(inf_nfe, "ide/dhEmi") or _text(inf_nfe, "ide/dEmi")),
            total_products=safe_float(totals.get("vProd")),
            total_freight=safe_float(totals.get("vFrete")),
            total_insurance=safe_float(totals.get("vSeg")),
            total_discount=safe_float(totals.get("vDesc")),
            total_other=safe_float(totals.get("vOutro")),
            total_icms_st=safe_float(totals.get("vST")),
            total_ipi=safe_float(totals.get("vIPI")),
        )

    def _build_items(self, dets: Iterable[Any], source: Optional[str]) -> Iterable[LineItem]:
        for position, det in enumerate(dets, start=1):
            prod = det.get("prod") if isinstance(det, Mapping) else None
            if not isinstance(prod, Mapping):
                LOGGER.warning("Skipping det #%s without prod node in %s", position, source or "document")
                continue
            tax = det.get("imposto") or {}
            yield LineItem(
                item_number=safe_int(det.get("@nItem"), default=position),
                code=_text(prod, "cProd") or "",
                description=_text(prod, "xProd") or "",
                unit=_text(prod, "uCom"),
                quantity=safe_float(prod.get("qCom")),
                unit_cost=safe_float(prod.get("vUnCom")),
                total_cost=safe_float(prod.get("vProd")),
                ipi=safe_float(_get(tax, "IPI/IPITrib/vIPI")),
                icms_st=safe_float(_group_value(_get(tax, "ICMS"), "vICMSST")),
                pis=safe_float(_group_value(_get(tax, "PIS"), "vPIS")),
                cofins=safe_float(_group_value(_get(tax, "COFINS"), "vCOFINS")),
                freight=optional_float(prod.get("vFrete")),
                insurance=optional_float(prod.get("vSeg")),
                discount=optional_float(prod.get("vDesc")),
                other=optional_float(prod.get("vOutro")),
            )

    @staticmethod
    def _invoice_id(inf_nfe: Mapping[str, Any], header: InvoiceHeader, source: Optional[str]) -> str:
        access_key = inf_nfe.get("@Id")
        if access_key:
            return str(access_key).replace("NFe", "")
        if source:
            return source
        return f"{header.emitter_cnpj}-{header.invoice_number}"


def normalize_invoice(tree: Dict[str, Any], *, source: Optional[str] = None) -> Invoice:
    return InvoiceNormalizer().normalize(tree, source=source)


__all__ = ["InvoiceNormalizer", "MalformedInvoice", "normalize_invoice"]
