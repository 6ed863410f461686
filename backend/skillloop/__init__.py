"""SkillLoop — peer-to-peer skill exchange: learners pay tutors in SKL tokens held in escrow
until a session completes, is rejected, or is canceled."""
