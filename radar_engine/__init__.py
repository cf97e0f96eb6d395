"""radar-engine - marketplace scraping engine.

Drives a shared headless browser against listing sites on behalf of many
monitors and returns either extracted listings or a diagnosis of why none
could be read.
"""

__version__ = "0.1.0"
__author__ = "Radar Team"
