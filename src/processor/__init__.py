"""
Marathon Match ledger processor.

This service handles:
1. Registration events - creating component state and result rows
2. Review events - appending submission history
3. Review summation events - recording aggregate scores
4. Review phase end events - placing contestants and snapshotting ratings
"""
