"""
Debug export of live overlays as a Plotly figure dict.
"""
