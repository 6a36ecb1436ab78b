from .schemas import BiopsychosocialContext, ClinicalAnalysis, SOAPAnalysisContext

def to_soap_analysis(analysis: ClinicalAnalysis) -> SOAPAnalysisContext:
    """Reshape a normalized analysis into the context the SOAP prompts consume."""
    return SOAPAnalysisContext(
        chief_complaint=analysis.chief_complaint,
        key_findings=analysis.clinical_findings or analysis.relevant_findings,
        medical_history=analysis.medical_history,
        medications=analysis.current_medications,
        red_flags=analysis.red_flags,
        yellow_flags=analysis.yellow_flags,
        suggested_tests=[t if isinstance(t, str) else t.test for t in analysis.suggested_physical_tests],
        biopsychosocial=BiopsychosocialContext(
            occupational=analysis.biopsychosocial_occupational or analysis.occupational_context,
            protective=analysis.biopsychosocial_protective,
            functional_limitations=analysis.biopsychosocial_functional_limitations,
            patient_strengths=analysis.biopsychosocial_patient_strengths,
        ),
    )
