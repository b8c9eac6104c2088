"""Top-level package for the Budget Planner.

The primary modules are:

* ``ledger`` and ``projection`` - the iteration ledger and the cost curves
  derived from it
* ``csv_io`` - CSV templates, import and export
* ``persistence`` - named saved states on the device and a remote store
* ``visualization`` and ``report`` - Plotly figures and the PDF export
* ``ui`` - the Streamlit page that ties everything together

To run the app from the command line you can execute:

```bash
python run_planner.py
```
"""

from . import ledger  # noqa: F401  # re-exported for convenience
from . import projection  # noqa: F401  # re-exported for convenience

__all__ = ["ledger", "projection"]
