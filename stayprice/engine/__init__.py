"""
engine package

 - stay.py: StayRequest and the inventory occupancy table
 - match_engine.py: screens, guest transformation, rate & supplement matching
 - result.py: MatchResult
"""
