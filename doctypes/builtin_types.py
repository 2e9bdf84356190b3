"""
Built-in Tax Form Templates

Field pattern tables for the tax forms the extractor understands.

Each form maps to an ordered list of FieldPattern entries. The order is the
order fields are reported in, and it is also the order the simulated
extraction path produces its template fields.
"""

from __future__ import annotations

from typing import Dict, List

from .document_type import FieldPattern, FieldType, TaxFormType, field_pattern


CURRENCY = FieldType.CURRENCY
TEXT = FieldType.TEXT
EIN = FieldType.EIN
STATE = FieldType.STATE

# Shared fragments
AMOUNT = r'([\d,]+\.?\d*)'
NAME_VALUE = r"([A-Za-z][A-Za-z0-9 &.,'-]{2,})"
FEDERAL_WITHHELD = r'(?:federal\s*(?:income\s*)?tax\s*withheld)\D{0,30}' + AMOUNT


def _labelled(label: str) -> str:
    """Amount shortly after a descriptive label."""
    return rf'(?:{label})\D{{0,30}}' + AMOUNT


def _box(box: str) -> str:
    """Amount shortly after a "Box N" reference."""
    return rf'(?:box\s*{box})\D{{0,20}}(?:\$\s*)?' + AMOUNT


def _name(who: str) -> str:
    """Name printed after "<who>'s name"."""
    return rf"(?:{who}['’]?s?\s*name[^:\n]*[:.]?\s*)" + NAME_VALUE


W2_FIELDS = [
    field_pattern('Employer Name', TEXT, _name('employer')),
    field_pattern(
        'Employer EIN', EIN,
        r"(?:employer['’]?s?\s*(?:identification|EIN|ID)[^:\n]*[:.]?\s*)(\d{2}[- ]?\d{7})",
        r'(\d{2}-\d{7})',
    ),
    field_pattern(
        'Wages (Box 1)', CURRENCY,
        _labelled(r'wages[,\s]*tips[,\s]*other\s*compensation'), _box('1'),
    ),
    field_pattern('Federal Tax Withheld (Box 2)', CURRENCY, FEDERAL_WITHHELD, _box('2')),
    field_pattern(
        'Social Security Wages (Box 3)', CURRENCY,
        _labelled(r'social\s*security\s*wages'), _box('3'),
    ),
    field_pattern(
        'Social Security Tax (Box 4)', CURRENCY,
        _labelled(r'social\s*security\s*tax\s*withheld'), _box('4'),
    ),
    field_pattern(
        'Medicare Wages (Box 5)', CURRENCY,
        _labelled(r'medicare\s*wages\s*(?:and\s*tips)?'), _box('5'),
    ),
    field_pattern(
        'Medicare Tax (Box 6)', CURRENCY,
        _labelled(r'medicare\s*tax\s*withheld'), _box('6'),
    ),
    field_pattern(
        'State (Box 15)', STATE,
        r'(?:state)\s*(?:box\s*15)?\s*[:.]?\s*([A-Z]{2})\b',
        r'\b([A-Z]{2})\s+(?:state\s*(?:wages|income|tax))',
    ),
    field_pattern(
        'State Income (Box 16)', CURRENCY,
        _labelled(r'state\s*wages[,\s]*tips'), _box('16'),
    ),
    field_pattern(
        'State Tax Withheld (Box 17)', CURRENCY,
        _labelled(r'state\s*(?:income\s*)?tax\s*(?:withheld)?'), _box('17'),
    ),
]

NEC1099_FIELDS = [
    field_pattern('Payer Name', TEXT, _name('payer')),
    field_pattern(
        'Payer TIN', EIN,
        r"(?:payer['’]?s?\s*(?:TIN|identification)[^:\n]*[:.]?\s*)(\d{2}[- ]?\d{7})",
        r'(\d{2}-\d{7})',
    ),
    field_pattern(
        'Nonemployee Compensation (Box 1)', CURRENCY,
        _labelled(r'nonemployee\s*compensation'), _box('1'),
    ),
    field_pattern('Federal Tax Withheld (Box 4)', CURRENCY, FEDERAL_WITHHELD, _box('4')),
]

MISC1099_FIELDS = [
    field_pattern('Payer Name', TEXT, _name('payer')),
    field_pattern('Payer TIN', EIN, r'(\d{2}-\d{7})'),
    field_pattern('Rents (Box 1)', CURRENCY, _labelled(r'rents'), _box('1')),
    field_pattern('Royalties (Box 2)', CURRENCY, _labelled(r'royalties'), _box('2')),
    field_pattern('Other Income (Box 3)', CURRENCY, _labelled(r'other\s*income'), _box('3')),
    field_pattern('Federal Tax Withheld (Box 4)', CURRENCY, FEDERAL_WITHHELD, _box('4')),
]

INT1099_FIELDS = [
    field_pattern('Payer Name', TEXT, _name('payer')),
    field_pattern(
        'Interest Income (Box 1)', CURRENCY,
        _labelled(r'interest\s*income'), _box('1'),
    ),
    field_pattern(
        'Early Withdrawal Penalty (Box 2)', CURRENCY,
        _labelled(r'early\s*withdrawal\s*penalty'), _box('2'),
    ),
    field_pattern(
        'Interest on US Savings Bonds (Box 3)', CURRENCY,
        _labelled(r'(?:us|u\.s\.)\s*savings\s*bonds'), _box('3'),
    ),
    field_pattern('Federal Tax Withheld (Box 4)', CURRENCY, FEDERAL_WITHHELD, _box('4')),
]

DIV1099_FIELDS = [
    field_pattern('Payer Name', TEXT, _name('payer')),
    field_pattern(
        'Total Ordinary Dividends (Box 1a)', CURRENCY,
        _labelled(r'(?:total\s*)?ordinary\s*dividends'), _box('1a'),
    ),
    field_pattern(
        'Qualified Dividends (Box 1b)', CURRENCY,
        _labelled(r'qualified\s*dividends'), _box('1b'),
    ),
    field_pattern(
        'Total Capital Gain Distributions (Box 2a)', CURRENCY,
        _labelled(r'(?:total\s*)?capital\s*gain\s*dist'), _box('2a'),
    ),
    field_pattern('Federal Tax Withheld (Box 4)', CURRENCY, FEDERAL_WITHHELD, _box('4')),
]

MORTGAGE1098_FIELDS = [
    field_pattern('Lender Name', TEXT, _name('(?:recipient|lender)')),
    field_pattern(
        'Mortgage Interest Received (Box 1)', CURRENCY,
        _labelled(r'mortgage\s*interest\s*received'), _box('1'),
    ),
    field_pattern('Points Paid (Box 2)', CURRENCY, _labelled(r'points\s*paid'), _box('2')),
    field_pattern(
        'Mortgage Insurance Premiums (Box 5)', CURRENCY,
        _labelled(r'mortgage\s*insurance\s*premiums'), _box('5'),
    ),
]

ACA1095A_FIELDS = [
    field_pattern(
        'Marketplace Identifier', TEXT,
        r'(?:marketplace\s*identifier)\s*[:.]?\s*([A-Za-z0-9-]+)',
    ),
    field_pattern(
        'Policy Number', TEXT,
        r'(?:policy\s*(?:number|no\.?))\s*[:.]?\s*([A-Za-z0-9-]+)',
    ),
    field_pattern(
        'Monthly Premium (Column A)', CURRENCY,
        _labelled(r'monthly\s*(?:enrollment\s*)?premium'),
        r'(?:column\s*a)\D{0,20}(?:\$\s*)?' + AMOUNT,
    ),
    field_pattern(
        'Monthly SLCSP Premium (Column B)', CURRENCY,
        _labelled(r'slcsp\s*premium'),
        r'(?:column\s*b)\D{0,20}(?:\$\s*)?' + AMOUNT,
    ),
    field_pattern(
        'Monthly APTC (Column C)', CURRENCY,
        _labelled(
            r'advance\s*(?:payment|premium)\s*(?:of\s*)?(?:the\s*)?(?:premium\s*)?tax\s*credit|aptc'
        ),
        r'(?:column\s*c)\D{0,20}(?:\$\s*)?' + AMOUNT,
    ),
]

R1099_FIELDS = [
    field_pattern('Payer Name', TEXT, _name('payer')),
    field_pattern(
        'Gross Distribution (Box 1)', CURRENCY,
        _labelled(r'gross\s*distribution'), _box('1'),
    ),
    field_pattern(
        'Taxable Amount (Box 2a)', CURRENCY,
        _labelled(r'taxable\s*amount'), _box('2a'),
    ),
    field_pattern('Federal Tax Withheld (Box 4)', CURRENCY, FEDERAL_WITHHELD, _box('4')),
    field_pattern(
        'Distribution Code (Box 7)', TEXT,
        r'(?:distribution\s*code)\s*[:.]?\s*([A-Za-z0-9])',
        r'(?:box\s*7)\s*[:.]?\s*([A-Za-z0-9])',
    ),
]

K1099_FIELDS = [
    field_pattern('Filer Name', TEXT, _name('filer')),
    field_pattern('Gross Amount (Box 1a)', CURRENCY, _labelled(r'gross\s*amount'), _box('1a')),
    field_pattern(
        'Card Not Present Transactions (Box 1b)', CURRENCY,
        _labelled(r'card\s*not\s*present'), _box('1b'),
    ),
    field_pattern('Federal Tax Withheld (Box 4)', CURRENCY, FEDERAL_WITHHELD, _box('4')),
]

E1098_FIELDS = [
    field_pattern('Lender Name', TEXT, _name('(?:recipient|lender)')),
    field_pattern(
        'Student Loan Interest (Box 1)', CURRENCY,
        _labelled(r'student\s*loan\s*interest'), _box('1'),
    ),
]

T1098_FIELDS = [
    field_pattern('Institution Name', TEXT, _name('(?:filer|institution)')),
    field_pattern(
        'Payments Received for Tuition (Box 1)', CURRENCY,
        _labelled(r'payments?\s*received\s*(?:for\s*)?(?:qualified\s*)?tuition'), _box('1'),
    ),
    field_pattern(
        'Scholarships or Grants (Box 5)', CURRENCY,
        _labelled(r'scholarships?\s*(?:or\s*)?grants?'), _box('5'),
    ),
]


BUILTIN_FIELD_PATTERNS: Dict[TaxFormType, List[FieldPattern]] = {
    TaxFormType.W2: W2_FIELDS,
    TaxFormType.NEC1099: NEC1099_FIELDS,
    TaxFormType.MISC1099: MISC1099_FIELDS,
    TaxFormType.INT1099: INT1099_FIELDS,
    TaxFormType.DIV1099: DIV1099_FIELDS,
    TaxFormType.MORTGAGE1098: MORTGAGE1098_FIELDS,
    TaxFormType.ACA1095A: ACA1095A_FIELDS,
    TaxFormType.R1099: R1099_FIELDS,
    TaxFormType.K1099: K1099_FIELDS,
    TaxFormType.E1098: E1098_FIELDS,
    TaxFormType.T1098: T1098_FIELDS,
}
