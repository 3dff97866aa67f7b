#!/usr/bin/env python3
"""
Demo scenario for the course claim platform.
"""

import sys
import os

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from courseclaim.config import DEFAULT_CONFIG, configure_logging
from courseclaim.main import run_demo_platform


def run_demo():
    """Run the Databases 101 walk-through against a throwaway database."""
    print("=" * 60)
    print("COURSE CLAIM PLATFORM - DEMO")
    print("=" * 60)

    configure_logging("WARNING")
    result = run_demo_platform(DEFAULT_CONFIG)

    course = result['course']
    print(f"\n1. Admin created '{course['name']}' with access code {course['access_code']}")
    print(f"2. Teacher A claimed it -> state={course['state']}, owner={course['teacher_id']}")
    print(f"3. Teacher B tried the same code -> {result['rejected_claim']}")
    enrollment = result['enrollment']
    print(f"4. Teacher A enrolled student {enrollment['student_id']} (grade={enrollment['grade']})")
    print(f"5. Enrolling the same student again -> {result['rejected_enrollment']}")

    print("\nAudit log:")
    for entry in result['audit_log']:
        print(f"  {entry['created_at']}  {entry['action']:14} {entry['entity']} {entry['entity_id']}")

    print("\n" + "=" * 60)
    print("DEMO COMPLETED SUCCESSFULLY!")
    print("=" * 60)


if __name__ == "__main__":
    run_demo()
