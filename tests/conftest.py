# FILE: tests/conftest.py

import pytest
import sys
import os
import logging
from pathlib import Path

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from x12_config import ConfigNode, config_root

# ==============================================================================
# PYTEST CONFIGURATION & HOOKS
# ==============================================================================

def pytest_configure(config):
    """Configure pytest settings and markers."""
    config.addinivalue_line("markers", "unit: Pure unit tests with no external dependencies.")
    config.addinivalue_line("markers", "integration: Tests that read files shipped with the repository.")

@pytest.fixture(scope="session", autouse=True)
def setup_test_environment(pytestconfig):
    """Set up test environment with logging configuration."""
    # Use pytest's log_cli_level if available, otherwise default to INFO
    log_level = pytestconfig.getoption("log_cli_level") or "INFO"
    logging.basicConfig(
        level=log_level.upper(),
        format="[%(asctime)s] [%(levelname)s] [%(name)s:%(lineno)d] - %(message)s",
        stream=sys.stdout,
        force=True,
    )
    logging.info(f"Test logging configured with level: {log_level.upper()}")
    yield

# ==============================================================================
# TEST DATA
# ==============================================================================

PROJECT_ROOT = Path(__file__).parent.parent

SAMPLE_835 = """
ISA*00*          *00*          *ZZ*PAYERID        *ZZ*PROVIDERID     *240715*1200*^*00501*000000101*0*P*:~
GS*HP*PAYERID*PROVIDERID*20240715*1200*101*X*005010X221A1~
ST*835*0001~
BPR*I*300.5*C*ACH*CCP*01*999999999*DA*123456*1512345678**01*999988880*DA*98765*20240715~
TRN*1*12345*1512345678~
DTM*405*20240714~
N1*PR*HEALTH PAYER~
N3*100 PAYER WAY~
N4*CAPITAL CITY*CA*90001~
PER*BL*CLAIMS DEPT*TE*8005550100~
N1*PE*MAIN STREET CLINIC*XX*1234567890~
N3*200 MAIN ST~
N4*ANYTOWN*CA*90210~
REF*TJ*123456789~
LX*1~
CLP*CLAIM001*1*200.25*150*25*12*PAYERCLM01*11*1~
CAS*PR*1*25~
NM1*QC*1*DOE*JANE****MI*SUB001~
DTM*232*20240701~
SVC*HC:99213*200.25*150**1~
DTM*472*20240701~
CAS*CO*45*25.25~
AMT*B6*175~
CLP*CLAIM002*1*350*150.5*0*12*PAYERCLM02*11*1~
NM1*QC*1*ROE*RICHARD****MI*SUB002~
SVC*HC:99214*350*150.5**1~
DTM*472*20240702~
CAS*CO*45*199.5~
SE*27*0001~
GE*1*101~
IEA*1*000000101~
""".strip()

@pytest.fixture(scope="session")
def sample_835_edi_string() -> str:
    """
    A compliant 835 interchange with one payer (1000A), one payee (1000B) and
    one LX group holding two claims (2100), each with a single service line (2110).
    """
    return SAMPLE_835

@pytest.fixture(scope="session")
def remittance_config() -> ConfigNode:
    """The 835 hierarchy declared with the builder, covering every segment in SAMPLE_835."""
    root = config_root("X12")
    isa = root.add_child("ISA", "ISA", min_occurs=1, max_occurs=1)
    gs = isa.add_child("GS", "GS", min_occurs=1)
    st = gs.add_child("ST", "ST", "835", min_occurs=1)
    st.add_child("BPR", "BPR", min_occurs=1, max_occurs=1)
    st.add_child("TRN", "TRN", min_occurs=1, max_occurs=1)
    st.add_child("DTM", "DTM", max_occurs=1)

    payer = st.add_child("1000A", "N1", "PR", min_occurs=1, max_occurs=1)
    payer.add_child("N3", "N3")
    payer.add_child("N4", "N4")
    payer.add_child("PER", "PER")

    payee = st.add_child("1000B", "N1", "PE", min_occurs=1, max_occurs=1)
    payee.add_child("N3", "N3")
    payee.add_child("N4", "N4")
    payee.add_child("REF", "REF")

    header = st.add_child("2000", "LX")
    claim = header.add_child("2100", "CLP", min_occurs=1)
    claim.add_child("CAS", "CAS")
    claim.add_child("NM1", "NM1")
    claim.add_child("DTM", "DTM")
    service = claim.add_child("2110", "SVC")
    service.add_child("DTM", "DTM")
    service.add_child("CAS", "CAS")
    service.add_child("AMT", "AMT")

    st.add_child("SE", "SE", min_occurs=1, max_occurs=1)
    gs.add_child("GE", "GE", min_occurs=1, max_occurs=1)
    isa.add_child("IEA", "IEA", min_occurs=1, max_occurs=1)
    return root.build()

@pytest.fixture(scope="session")
def config_dir() -> Path:
    return PROJECT_ROOT / "src" / "configs"

@pytest.fixture(scope="session")
def build_isa():
    """Factory for a fixed-width ISA header without its terminator (105 characters)."""
    def _build(element_separator: str = "*", sub_element_separator: str = ":", control_number: str = "000000001") -> str:
        fields = [
            "ISA", "00", " " * 10, "00", " " * 10, "ZZ", "SENDER".ljust(15), "ZZ", "RECEIVER".ljust(15),
            "240715", "1200", "^", "00501", control_number, "0", "P", sub_element_separator,
        ]
        return element_separator.join(fields)
    return _build
