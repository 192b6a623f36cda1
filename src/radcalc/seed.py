"""Literature-sourced alpha/beta values loaded into an empty reference table."""
from loguru import logger

from .errors import DuplicateError
from .schemas import Citation

SEED_REFERENCES = [
    {
        "tissue": "Lung (late effects)",
        "alpha_beta": 3.0,
        "description": "Typical value for late effects in lung tissue",
        "citations": [
            Citation(title="ESTRO/EORTC recommendations", url="https://www.estro.org", year=1995),
            Citation(title="Fowler JF. The linear-quadratic formula", url="https://pubmed.ncbi.nlm.nih.gov/2689390/", year=1989),
        ],
    },
    {
        "tissue": "Spinal cord",
        "alpha_beta": 2.0,
        "description": "Conservative value for the spinal cord",
        "citations": [
            Citation(title="Schultheiss TE et al. Radiation response", url="https://pubmed.ncbi.nlm.nih.gov/7741617/", year=1995),
        ],
    },
    {
        "tissue": "Liver",
        "alpha_beta": 2.0,
        "description": "Late effects of radiation-induced hepatitis",
        "citations": [
            Citation(title="Dawson LA et al. Analysis of radiation-induced liver disease", url="https://pubmed.ncbi.nlm.nih.gov/12377322/", year=2002),
        ],
    },
    {
        "tissue": "Skin (early reactions)",
        "alpha_beta": 10.0,
        "description": "Skin erythema and early reactions",
        "citations": [
            Citation(title="Turesson I, Thames HD. Repair capacity of human skin", url="https://pubmed.ncbi.nlm.nih.gov/2655381/", year=1989),
        ],
    },
    {
        "tissue": "Rectum",
        "alpha_beta": 3.0,
        "description": "Late proctitis",
        "citations": [
            Citation(title="Michalski JM et al. Radiation dose-volume effects", url="https://pubmed.ncbi.nlm.nih.gov/19931641/", year=2010),
        ],
    },
    {
        "tissue": "Bladder",
        "alpha_beta": 5.0,
        "description": "Late cystitis",
        "citations": [
            Citation(title="Viswanathan AN et al. Radiation dose-volume effects", url="https://pubmed.ncbi.nlm.nih.gov/19931637/", year=2010),
        ],
    },
    {
        "tissue": "Squamous cell carcinoma",
        "alpha_beta": 10.0,
        "description": "Most squamous cell carcinomas",
        "citations": [
            Citation(title="Bentzen SM, Ritter MA. The alpha/beta ratio for prostate cancer", url="https://pubmed.ncbi.nlm.nih.gov/15936557/", year=2005),
        ],
    },
    {
        "tissue": "Prostate adenocarcinoma",
        "alpha_beta": 1.5,
        "description": "Low value typical of prostate cancer",
        "citations": [
            Citation(title="Fowler J et al. What hypofractionated protocols", url="https://pubmed.ncbi.nlm.nih.gov/12788163/", year=2003),
            Citation(title="Brenner DJ, Hall EJ. Fractionation for prostate", url="https://pubmed.ncbi.nlm.nih.gov/10561366/", year=1999),
        ],
    },
    {
        "tissue": "Breast cancer",
        "alpha_beta": 4.0,
        "description": "Intermediate value for breast cancer",
        "citations": [
            Citation(title="START Trialists Group. UK Standardisation of Breast Radiotherapy", url="https://pubmed.ncbi.nlm.nih.gov/18242665/", year=2008),
        ],
    },
    {
        "tissue": "Melanoma",
        "alpha_beta": 0.6,
        "description": "Very low value indicating high radioresistance",
        "citations": [
            Citation(title="Bentzen SM et al. Radiobiological considerations", url="https://pubmed.ncbi.nlm.nih.gov/7496534/", year=1994),
        ],
    },
    {
        "tissue": "Oral mucosa",
        "alpha_beta": 10.0,
        "description": "Oral mucositis",
        "citations": [
            Citation(title="Dörr W, Hamilton CS et al. Normal tissue tolerance", url="https://pubmed.ncbi.nlm.nih.gov/20082811/", year=2010),
        ],
    },
    {
        "tissue": "Kidney",
        "alpha_beta": 2.5,
        "description": "Late renal effects",
        "citations": [
            Citation(title="Dawson LA, Kavanagh BD. Radiation-associated kidney injury", url="https://pubmed.ncbi.nlm.nih.gov/20430181/", year=2010),
        ],
    },
]


async def seed_references(references) -> int:
    """
    Insert the seed set if the reference table is empty.

    Each row goes through the normal ``add`` path, so it is audited like any
    other addition.

    Returns:
        Number of rows inserted (0 when the table already had data).
    """
    if await references.count() > 0:
        return 0

    added = 0
    for item in SEED_REFERENCES:
        try:
            await references.add(**item)
            added += 1
        except DuplicateError:
            logger.warning(f"Seed tissue '{item['tissue']}' already present, skipping")

    logger.info(f"Seeded {added} alpha/beta references")
    return added


__all__ = ["SEED_REFERENCES", "seed_references"]
