#!/usr/bin/env python3
"""
Evaluate CLI - assess one recorded history-taking encounter

Reads an encounter JSON file (questions, student hypotheses, chief complaint,
patient, expert content) and writes the assessment plus a markdown report.
Uses Claude API for classification, rubric and feedback by default.

Usage:
    python evaluate.py --encounter encounters/Alex_Chest_Pain.json
    python evaluate.py --encounter encounter.json --rule-based   # Offline, no API
    python evaluate.py --encounter encounter.json --no-rubric

Output:
    outputs/evaluations/{student}_{case}_assessment.json
    outputs/reports/{student}_{case}_report.md
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from history_assessment.engine import (
    AssessmentConfig, AssessmentRequest, EncounterAssessor, InvalidEncounterError,
    generate_report
)


def main():
    parser = argparse.ArgumentParser(
        description='Assess a history-taking encounter',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Basic assessment (API-based by default)
    python evaluate.py --encounter encounters/Alex_Chest_Pain.json

    # API assessment with custom API key
    python evaluate.py --encounter encounter.json --api-key sk-ant-...

    # Rule-based assessment (no network)
    python evaluate.py --encounter encounter.json --rule-based

    # Custom output directory
    python evaluate.py --encounter encounter.json --output ./my_outputs
        """
    )

    parser.add_argument(
        '--encounter',
        required=True,
        help='Path to encounter JSON file'
    )
    parser.add_argument(
        '--output',
        default='./outputs',
        help='Output directory base (default: ./outputs)'
    )
    parser.add_argument(
        '--rule-based',
        action='store_true',
        help='Use keyword classification and rule-based rubric/feedback (API is default)'
    )
    parser.add_argument(
        '--no-rubric',
        action='store_true',
        help='Skip rubric scoring'
    )
    parser.add_argument(
        '--api-key',
        help='Anthropic API key (optional, can also use ANTHROPIC_API_KEY env var)'
    )

    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING, format='  ⚠ %(name)s: %(message)s')

    # Validate encounter path
    encounter_path = Path(args.encounter)
    if not encounter_path.exists():
        print(f"ERROR: Encounter not found: {encounter_path}")
        sys.exit(1)

    # Load encounter
    print(f"\n{'='*60}")
    print("LOADING ENCOUNTER")
    print(f"{'='*60}")

    with open(encounter_path, 'r') as f:
        encounter_data = json.load(f)

    try:
        request = AssessmentRequest.from_dict(encounter_data)
    except InvalidEncounterError as e:
        print(f"ERROR: Invalid encounter: {e}")
        sys.exit(1)

    student_name = encounter_data.get('student_name', encounter_data.get('studentName', 'Unknown'))
    case_name = encounter_data.get('case_name', encounter_data.get('caseName', 'Unknown'))

    print(f"Student: {student_name}")
    print(f"Case: {case_name}")
    print(f"Chief complaint: {request.chief_complaint}")
    print(f"Questions: {len(request.questions)}")
    print(f"Hypotheses: {', '.join(h.name for h in request.student_hypotheses) or 'none'}")

    # Assess
    print(f"\n{'='*60}")
    print("ASSESSING ENCOUNTER")
    if args.rule_based:
        print("  Using rule-based assessment")
    else:
        print("  Using API-based assessment (Claude)")
    if request.classifications is not None:
        print("  Using recorded question classifications")
    print(f"{'='*60}")

    config = AssessmentConfig.from_env(
        api_key=args.api_key,
        use_api=not args.rule_based,
        include_rubric=not args.no_rubric,
    )
    assessor = EncounterAssessor(config)
    result = assessor.assess(request)

    # Print summary
    m = result.metrics
    print("\n✓ Assessment complete")
    print(f"  Phase: {result.phase.phase.value} "
          f"({result.phase.thresholds_met}/{result.phase.thresholds_total} thresholds)")
    print(f"  Primary deficit: {result.deficit.primary_deficit.value}")
    print(f"  Hypothesis coverage: {m.hd.hypothesis_coverage * 100:.0f}%")
    print(f"  Completeness: {m.completeness.completeness_ratio * 100:.0f}%")
    if result.rubric:
        print(f"  Rubric global rating: {result.rubric.global_rating}/4 ({result.rubric.source})")
    if result.cognitive_errors.errors:
        print(f"  ⚠ Cognitive errors: {result.cognitive_errors.grading_summary}")

    # Save assessment
    output_base = Path(args.output)
    eval_dir = output_base / "evaluations"
    report_dir = output_base / "reports"
    eval_dir.mkdir(parents=True, exist_ok=True)
    report_dir.mkdir(parents=True, exist_ok=True)

    safe_name = str(student_name).replace(' ', '_')
    safe_case = str(case_name).replace(' ', '_')

    eval_path = eval_dir / f"{safe_name}_{safe_case}_assessment.json"
    eval_data = {
        'student': student_name,
        'case': case_name,
        **result.to_dict(),
    }
    with open(eval_path, 'w') as f:
        json.dump(eval_data, f, indent=2)

    report_path = report_dir / f"{safe_name}_{safe_case}_report.md"
    with open(report_path, 'w') as f:
        f.write(generate_report(result, student_name, case_name))

    # Summary
    print(f"\n{'='*60}")
    print("ASSESSMENT COMPLETE")
    print(f"{'='*60}")
    print(f"Assessment: {eval_path}")
    print(f"Report: {report_path}")


if __name__ == "__main__":
    main()
