"""
Employee portal: leave requests and the discussion forum, behind the login gate.
"""
